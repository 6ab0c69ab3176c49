"""HTTP server that runs engine routines for remote callers.

Run one server per platform on a machine of that platform, then list it in
the caller's ``servers`` setting. :class:`~pkgscope.remote.HttpRemoteExecutor`
talks to ``POST /exec``.

Examples
--------
>>> from fastapi.testclient import TestClient
>>> from pkgscope.engine import Reflector
>>> app = create_app(Reflector.from_settings())  # doctest: +SKIP
>>> TestClient(app).get("/status").json()["platform"]  # doctest: +SKIP
'linux64'
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from pkgscope.engine import Reflector
from pkgscope.errors import ErrorCode, PkgScopeError
from pkgscope.logging import get_logger
from pkgscope.platforms import current_platform

__all__ = ["ExecRequest", "create_app", "error_response"]

logger = get_logger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.UNKNOWN_PACKAGE: 404,
    ErrorCode.PACKAGE_NOT_INSTALLED: 404,
    ErrorCode.UNKNOWN_PLATFORM: 400,
    ErrorCode.RUNTIME_ERROR: 400,
    ErrorCode.COLLABORATOR_UNAVAILABLE: 503,
}


class ExecRequest(BaseModel):
    """Body of ``POST /exec``."""

    routine: str = Field(description="Routine name")
    args: list[object] = Field(default_factory=list, description="Positional arguments")


def error_response(error: PkgScopeError, request: Request | None = None) -> JSONResponse:
    """Convert ``error`` into a problem-details JSON response.

    Parameters
    ----------
    error : PkgScopeError
        Error to report.
    request : Request | None, optional
        Request that failed, used for the ``instance`` field. Defaults to None.

    Returns
    -------
    JSONResponse
        Response with an ``application/problem+json`` body.
    """
    status = _STATUS_BY_CODE.get(error.code, 500)
    body = {"status": status, **error.to_dict()}
    if request is not None:
        body["instance"] = request.url.path
    logger.log(error.log_level, "Request failed: %s", error.message, exc_info=error.__cause__)
    return JSONResponse(
        status_code=status,
        content=body,
        headers={"Content-Type": "application/problem+json"},
    )


def create_app(reflector: Reflector) -> FastAPI:
    """Build the FastAPI application serving ``reflector``.

    Parameters
    ----------
    reflector : Reflector
        Engine whose routines are served.

    Returns
    -------
    FastAPI
        Application with ``GET /status`` and ``POST /exec``.
    """
    app = FastAPI(title="pkgscope", version="0.1.0")

    @app.exception_handler(PkgScopeError)
    async def _handle_error(request: Request, exc: PkgScopeError) -> JSONResponse:
        return error_response(exc, request)

    @app.get("/status")
    def status() -> dict[str, object]:
        return {
            "status": "ok",
            "platform": current_platform(),
            "root_dir": str(reflector.settings.root_dir),
        }

    @app.post("/exec")
    def run(body: ExecRequest) -> dict[str, object]:
        logger.info(
            "Serving routine",
            extra={"operation": body.routine, "platform": current_platform()},
        )
        return {"result": reflector.run_routine(body.routine, body.args)}

    return app
