import pytest

from unblocker.rewrite.css import (
    rewrite_css_imports,
    rewrite_css_urls,
    rewrite_stylesheet,
)
from unblocker.rewrite.url_resolver import BaseOrigin

PROXIED_IMG = "/proxy?url=https%3A%2F%2Fex.com%2Fimg%2Fbg.png"


@pytest.fixture
def base():
    return BaseOrigin.from_url("https://ex.com/")


class TestCssUrls:
    @pytest.mark.parametrize(
        "css",
        [
            "body { background: url(img/bg.png); }",
            "body { background: url('img/bg.png'); }",
            'body { background: url("img/bg.png"); }',
            'body { background: url(  "img/bg.png"  ); }',
            "body { background: URL(img/bg.png); }",
        ],
    )
    def test_url_forms(self, base, css):
        assert rewrite_css_urls(css, base) == (
            f'body {{ background: url("{PROXIED_IMG}"); }}'
        )

    def test_multiple_urls(self, base):
        css = "a{background:url(a.png)} b{background:url(/b.png)}"
        result = rewrite_css_urls(css, base)
        assert 'url("/proxy?url=https%3A%2F%2Fex.com%2Fa.png")' in result
        assert 'url("/proxy?url=https%3A%2F%2Fex.com%2Fb.png")' in result

    def test_data_uri_untouched(self, base):
        css = "a { background: url(data:image/png;base64,iVBORw0KGgo=); }"
        assert rewrite_css_urls(css, base) == css

    def test_quoted_data_uri_untouched(self, base):
        css = "a { background: url('DATA:image/svg+xml;utf8,<svg></svg>'); }"
        assert rewrite_css_urls(css, base) == css

    def test_already_proxied_untouched(self, base):
        css = f'a {{ background: url("{PROXIED_IMG}"); }}'
        assert rewrite_css_urls(css, base) == css

    def test_idempotent(self, base):
        css = "a { background: url(img/bg.png) } b { background: url('//cdn.ex.org/x.png') }"
        once = rewrite_css_urls(css, base)
        assert rewrite_css_urls(once, base) == once

    @pytest.mark.parametrize(
        "css",
        [
            "a { background: url(); }",
            "a { background: url(''); }",
            "a { background: url(",
            'a { background: url("http://[::1"); }',
            'a { background: url("a.png) }',
            "a { background: url('a.png) }",
            "a{background:url(} b{width:calc(1px)}",
            'a { background: url("a.png\n) }',
            "a { background: url(a b.png) }",
        ],
    )
    def test_malformed_or_empty_left_alone(self, base, css):
        assert rewrite_css_urls(css, base) == css

    def test_unterminated_token_does_not_swallow_later_rules(self, base):
        css = "a { background: url('a.png) }\nb { background: url(b.png) }"
        assert rewrite_css_urls(css, base) == (
            "a { background: url('a.png) }\n"
            'b { background: url("/proxy?url=https%3A%2F%2Fex.com%2Fb.png") }'
        )

    def test_quote_of_other_kind_inside_argument(self, base):
        result = rewrite_css_urls("""a { background: url("it's.png"); }""", base)
        assert result == 'a { background: url("/proxy?url=https%3A%2F%2Fex.com%2Fit%27s.png"); }'

    def test_fragment_reference_stays_in_document(self, base):
        css = "a { filter: url(#svg-filter); }"
        assert rewrite_css_urls(css, base) == css

    def test_empty_text(self, base):
        assert rewrite_css_urls("", base) == ""


class TestCssImports:
    def test_double_quoted_import(self, base):
        assert rewrite_css_imports('@import "a.css";', base) == (
            '@import "/proxy?url=https%3A%2F%2Fex.com%2Fa.css";'
        )

    def test_single_quoted_import_keeps_quotes_and_media(self, base):
        assert rewrite_css_imports("@import 'print.css' print;", base) == (
            "@import '/proxy?url=https%3A%2F%2Fex.com%2Fprint.css' print;"
        )

    def test_data_import_untouched(self, base):
        css = '@import "data:text/css,body{color:red}";'
        assert rewrite_css_imports(css, base) == css

    def test_url_import_left_to_url_pass(self, base):
        css = '@import url("a.css");'
        assert rewrite_css_imports(css, base) == css

    def test_unterminated_import_untouched(self, base):
        css = '@import "a.css;\nbody { color: red }'
        assert rewrite_css_imports(css, base) == css

    def test_idempotent(self, base):
        once = rewrite_css_imports('@import "a.css";', base)
        assert rewrite_css_imports(once, base) == once


class TestStylesheet:
    def test_imports_and_urls(self, base):
        css = '@import "a.css";\n@import url(b.css);\nbody { background: url(img/bg.png) }'
        result = rewrite_stylesheet(css, base)
        assert result == (
            '@import "/proxy?url=https%3A%2F%2Fex.com%2Fa.css";\n'
            '@import url("/proxy?url=https%3A%2F%2Fex.com%2Fb.css");\n'
            f'body {{ background: url("{PROXIED_IMG}") }}'
        )
