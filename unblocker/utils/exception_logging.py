"""
Helpers for logging and describing exceptions raised while proxying.

Upstream failures from httpx usually wrap the interesting error (DNS lookup,
refused connection, TLS) as their cause, and anyio task groups wrap failures
into exception groups. These helpers flatten both into one readable line and
never raise themselves.
"""

import logging
from typing import List, Optional


def _safe_str(obj) -> str:
    """
    Convert an object to string, falling back to repr and then the type name.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _describe(exception: BaseException) -> str:
    text = _safe_str(exception)
    name = type(exception).__name__
    return f"{name}: {text}" if text else name


def _sub_exceptions(exception) -> List[BaseException]:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def _cause_chain(exception: BaseException, limit: int = 5) -> List[BaseException]:
    """Collect explicit causes (``raise ... from ...``), outermost first."""
    chain = []
    seen = {id(exception)}
    current: Optional[BaseException] = getattr(exception, "__cause__", None)
    while current is not None and id(current) not in seen and len(chain) < limit:
        chain.append(current)
        seen.add(id(current))
        current = getattr(current, "__cause__", None)
    return chain


def format_exception_message(exception: Optional[BaseException]) -> str:
    """
    Format an exception for a client facing diagnostic.

    The message of the exception itself comes first, followed by its causes and,
    for exception groups, each sub-exception.

    Args:
        exception: The exception to format

    Returns:
        A single line describing the exception
    """
    if exception is None:
        return "None"
    try:
        message = _safe_str(exception) or type(exception).__name__
        causes = [
            _describe(cause)
            for cause in _cause_chain(exception)
            if _safe_str(cause) not in message
        ]
        if causes:
            message = f"{message} (caused by {'; '.join(causes)})"
        sub_exceptions = _sub_exceptions(exception)
        if sub_exceptions:
            joined = "; ".join(_describe(sub) for sub in sub_exceptions)
            message = f"{message} (Sub-exceptions: {joined})"
        return message
    except Exception:
        return f"<{type(exception).__name__} (formatting failed)>"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Optional[BaseException],
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, one extra record per sub-exception of an exception group.

    Tracebacks are only attached at ERROR and above; upstream failures are
    expected and logged at WARNING without one.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]", "[Fetch]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        exc_info = exception if exception is not None and level >= logging.ERROR else None
        logger.log(
            level,
            f"{prefix} {format_exception_message(exception)}",
            exc_info=exc_info,
        )
        for i, sub_exc in enumerate(_sub_exceptions(exception)):
            logger.log(
                level,
                f"{prefix} Sub-exception {i + 1}: {_describe(sub_exc)}",
                exc_info=sub_exc if level >= logging.ERROR else None,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            pass
