"""HTTP API of the adam file store.

Every JSON response carries ``ok`` and, when something went wrong, an
``error`` message.
"""

import logging
import mimetypes
import posixpath
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from . import __version__
from .exceptions import (
    AdamError,
    InconsistencyError,
    IndexUpdateError,
    SnapshotError,
    StorageError,
)
from .filestore import FileStore
from .snapshot import loads

logger = logging.getLogger(__name__)


def errorf(message: str, status_code: int = 400) -> JSONResponse:
    """Return the ``{"ok": false, "error": ...}`` response."""
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


def failure(operation: str, exc: Exception) -> JSONResponse:
    """Map an exception raised by the store to an error response."""
    if isinstance(exc, (StorageError, IndexUpdateError)):
        logger.error("%s: %s", operation, exc)
        status_code = 500
    elif isinstance(exc, InconsistencyError):
        logger.error("%s: %s", operation, exc)
        status_code = 409
    elif isinstance(exc, (IOError, KeyError)):
        status_code = 404
    else:
        status_code = 400
    return errorf(str(exc), status_code)


def get_store(request: Request) -> FileStore:
    return request.app.state.store


def create_app(store: FileStore) -> FastAPI:
    """Build the application serving `store`."""
    app = FastAPI(
        title="adam",
        description="Self-hosted file store with checksum and identity indices",
        version=__version__,
    )
    app.state.store = store

    def resolve(store: FileStore, path: Optional[str], identifier: Optional[str]):
        """Return ``(path, None)`` or ``(None, error response)`` from either
        an explicit path or an identifier.
        """
        if path:
            return path, None
        if not identifier:
            return None, errorf("missing id query parameter or path")

        try:
            found = store.path_of(identifier)
        except AdamError as exc:
            return None, failure("lookup", exc)
        if found is None:
            return None, errorf("no path with id {0}".format(identifier), 404)
        return found, None

    @app.get("/get")
    def get_file(id: Optional[str] = None, store: FileStore = Depends(get_store)):
        if not id:
            return errorf("missing id query parameter")

        path, error = resolve(store, None, id)
        if error is not None:
            return error

        try:
            content = store.read(path)
        except (AdamError, IOError, ValueError) as exc:
            return failure("get", exc)

        media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return Response(content=content, media_type=media_type)

    @app.get("/files")
    @app.get("/files/{path:path}")
    def raw_file(path: str = "", store: FileStore = Depends(get_store)):
        try:
            if store.isdir(path):
                return {"ok": True, "path": path, "entries": store.listdir(path)}
            content = store.read(path)
        except (AdamError, IOError, ValueError) as exc:
            return failure("files", exc)

        media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return Response(content=content, media_type=media_type)

    @app.post("/put")
    @app.post("/put/{directory:path}")
    async def put_files(request: Request, directory: str = "",
                        store: FileStore = Depends(get_store)):
        form = await request.form()

        uploads = [value for _, value in form.multi_items()
                   if isinstance(value, UploadFile)]
        if not uploads:
            return errorf("no file provided")

        files = []
        for upload in uploads:
            name = posixpath.basename((upload.filename or "").replace("\\", "/"))
            content = await upload.read()
            await upload.close()
            if not name:
                logger.warning("put: upload without a file name skipped")
                continue
            files.append((posixpath.join(directory, name), content))

        records, errors = await run_in_threadpool(store.store_many, files)

        return {
            "ok": not errors,
            "files": [record.as_dict() for record in records],
            "errors": [str(exc) for exc in errors],
        }

    @app.get("/del")
    @app.get("/del/{path:path}")
    def delete(path: str = "", id: Optional[str] = None,
               store: FileStore = Depends(get_store)):
        path, error = resolve(store, path, id)
        if error is not None:
            return error

        try:
            store.delete(path)
        except (AdamError, ValueError) as exc:
            return failure("del", exc)
        return {"ok": True}

    @app.get("/move")
    def move(oldpath: Optional[str] = None, newpath: Optional[str] = None,
             id: Optional[str] = None, store: FileStore = Depends(get_store)):
        if not oldpath and not id:
            return errorf("missing either oldpath or id query parameter")

        oldpath, error = resolve(store, oldpath, id)
        if error is not None:
            return error
        if not newpath:
            return errorf("missing newpath query parameter")

        try:
            store.move(oldpath, newpath)
        except (AdamError, ValueError) as exc:
            return failure("move", exc)
        return {"ok": True}

    @app.get("/sha256sum")
    @app.get("/sha256sum/{path:path}")
    def sha256sum(path: str = "", id: Optional[str] = None,
                  store: FileStore = Depends(get_store)):
        path, error = resolve(store, path, id)
        if error is not None:
            return error

        try:
            checksum = store.checksum(path)
        except (AdamError, ValueError) as exc:
            return failure("sha256sum", exc)
        if checksum is None:
            return errorf("no checksum for {0}".format(path), 404)

        return {"ok": True, "file": path, "sha256sum": checksum}

    @app.get("/get_meta")
    def get_meta(store: FileStore = Depends(get_store)):
        try:
            records, errors = store.dump()
        except AdamError as exc:
            return failure("get_meta", exc)

        return {
            "ok": not errors,
            "files": [record.as_dict() for record in records],
            "errors": [str(exc) for exc in errors],
        }

    @app.post("/set_meta")
    async def set_meta(request: Request, store: FileStore = Depends(get_store)):
        try:
            records = loads(await request.body())
        except SnapshotError as exc:
            return errorf(str(exc))

        errors = await run_in_threadpool(store.restore, records)
        return {"ok": not errors, "errors": [str(exc) for exc in errors]}

    return app
