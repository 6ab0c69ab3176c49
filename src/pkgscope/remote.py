"""HTTP client for engine routines served on other platforms.

Each platform listed in ``settings.servers`` has a pkgscope server (see
:mod:`pkgscope.server`) running on a machine of that platform. A routine call
is one ``POST /exec`` with ``{"routine": ..., "args": [...]}``; the server
replies ``{"result": ...}``. ``GET /status`` reports the platform a server
targets. Transport failures are retried with tenacity;
anything still failing becomes :class:`~pkgscope.errors.CollaboratorUnavailableError`.
"""

from __future__ import annotations

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from pkgscope.errors import CollaboratorUnavailableError
from pkgscope.logging import get_logger
from pkgscope.settings import ReflectSettings

__all__ = ["HttpRemoteExecutor"]

logger = get_logger(__name__)

EXEC_PATH = "/exec"
STATUS_PATH = "/status"


class HttpRemoteExecutor:
    """Runs routines on per-platform pkgscope servers.

    Parameters
    ----------
    settings : ReflectSettings
        Installation settings (servers, timeout and retry count).
    client : httpx.Client | None, optional
        HTTP client to use. Defaults to a client with the configured timeout.
    """

    def __init__(self, settings: ReflectSettings, client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = client or httpx.Client(timeout=settings.remote_timeout_s)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def url(self, platform: str, path: str = EXEC_PATH) -> str:
        """Return the ``path`` endpoint of the server for ``platform``."""
        try:
            host, port = self.settings.servers[platform]
        except KeyError as exc:
            msg = f"no server configured for {platform}"
            raise CollaboratorUnavailableError(
                msg, collaborator="remote", cause=exc, context={"platform": platform}
            ) from exc
        return f"http://{host}:{port}{path}"

    def _request(
        self, method: str, url: str, body: dict[str, object] | None = None
    ) -> httpx.Response:
        retrying = Retrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self.settings.remote_retries),
            wait=wait_exponential(multiplier=0.5, max=5),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                response = self._client.request(method, url, json=body)
                response.raise_for_status()
                return response
        msg = "retry loop exited without a response"
        raise RuntimeError(msg)

    def run_on_platform(self, platform: str, routine: str, args: list[object]) -> object:
        """Run ``routine(*args)`` on the server of ``platform``.

        Parameters
        ----------
        platform : str
            Target platform.
        routine : str
            Routine name.
        args : list[object]
            JSON-compatible positional arguments.

        Returns
        -------
        object
            The routine's JSON result.

        Raises
        ------
        CollaboratorUnavailableError
            If the server cannot be reached, replies with an error, or replies
            with a malformed payload.
        """
        url = self.url(platform)
        context = {"platform": platform, "routine": routine, "url": url}
        logger.info(
            "Running remote routine",
            extra={"operation": routine, "platform": platform, "status": "started"},
        )
        try:
            response = self._request("POST", url, {"routine": routine, "args": args})
            payload = response.json()
        except httpx.HTTPError as exc:
            msg = f"remote {routine} on {platform} failed: {exc}"
            raise CollaboratorUnavailableError(
                msg, collaborator="remote", cause=exc, context=context
            ) from exc
        except ValueError as exc:
            msg = f"remote {routine} on {platform} returned invalid JSON"
            raise CollaboratorUnavailableError(
                msg, collaborator="remote", cause=exc, context=context
            ) from exc
        if not isinstance(payload, dict) or "result" not in payload:
            msg = f"remote {routine} on {platform} returned no result"
            raise CollaboratorUnavailableError(msg, collaborator="remote", context=context)
        return payload["result"]

    def status(self, platform: str) -> dict[str, object]:
        """Return the ``GET /status`` document of the server for ``platform``.

        Raises
        ------
        CollaboratorUnavailableError
            If the server cannot be reached or replies with something other
            than a JSON object.
        """
        url = self.url(platform, STATUS_PATH)
        context = {"platform": platform, "url": url}
        try:
            payload = self._request("GET", url).json()
        except httpx.HTTPError as exc:
            msg = f"status of {platform} server failed: {exc}"
            raise CollaboratorUnavailableError(
                msg, collaborator="remote", cause=exc, context=context
            ) from exc
        except ValueError as exc:
            msg = f"status of {platform} server is not JSON"
            raise CollaboratorUnavailableError(
                msg, collaborator="remote", cause=exc, context=context
            ) from exc
        if not isinstance(payload, dict):
            msg = f"status of {platform} server is not an object"
            raise CollaboratorUnavailableError(msg, collaborator="remote", context=context)
        return payload
