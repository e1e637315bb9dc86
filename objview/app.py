from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from logging import debug, info

from . import config
from .util.errors import (
    AmbiguousIdentifierError,
    BadIdentifierError,
    NotFoundError,
    ObjectError,
    StorageError,
)
from .util.objects import read_object
from .util.store import DumbHttpStore, ObjectStore

config.setup_logging()

app = FastAPI(title="objview")


def get_store() -> ObjectStore:
    return config.make_store()


@app.exception_handler(ObjectError)
async def object_error_handler(request: Request, exc: ObjectError):
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, (BadIdentifierError, AmbiguousIdentifierError)):
        status = 400
    elif isinstance(exc, StorageError):
        store = getattr(request.state, "store", None)
        status = 502 if isinstance(store, DumbHttpStore) else 500
    else:
        status = 422
    info("%s %s -> %d %s", request.method, request.url.path, status, exc)
    return JSONResponse({"error": type(exc).__name__, "detail": str(exc)}, status)


def store_dependency(request: Request, store: ObjectStore = Depends(get_store)) -> ObjectStore:
    # kept on the request so the error handler knows which backend failed
    request.state.store = store
    return store


@app.get("/")
def homepage():
    return Response("objview up\n")


@app.get("/objects/{hash}")
def get_object(hash: str, store: ObjectStore = Depends(store_dependency)):
    obj = read_object(store, hash)
    debug(f"Decoded {obj!r}")
    return {"hash": store.resolve(hash), **obj.to_dict()}


# Same layout as the dumb http protocol, so this can serve git clients directly
@app.get("/objects/{prefix}/{rest}")
def get_stored_object(prefix: str, rest: str, store: ObjectStore = Depends(store_dependency)):
    if len(prefix) != 2:
        raise BadIdentifierError(f"{prefix}/{rest}")
    return Response(store.read_compressed(prefix + rest), media_type="application/x-git-loose-object")


@app.get("/raw/{hash}")
def get_raw_object(hash: str, store: ObjectStore = Depends(store_dependency)):
    return Response(store.read(store.resolve(hash)), media_type="application/octet-stream")
