import uvicorn

from unblocker.vars import HOST, PORT

if __name__ == "__main__":
    uvicorn.run("unblocker.server:app", host=HOST, port=PORT)
