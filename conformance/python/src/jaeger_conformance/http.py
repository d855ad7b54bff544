from __future__ import annotations

import http.client
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Protocol

from jaeger_conformance.errors import TransportConnectionError, TransportError, TransportTimeoutError

DEFAULT_TIMEOUT_S = 1.0


@dataclass(frozen=True)
class HttpResponse:
    url: str
    status_code: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def content_type(self) -> str | None:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value.split(";", 1)[0].strip().lower()
        return None


class Transport(Protocol):
    def send(self, method: str, url: str, headers: dict[str, str], timeout_s: float) -> HttpResponse: ...


class UrllibTransport:
    """Performs one HTTP round trip with `urllib.request`."""

    def send(self, method: str, url: str, headers: dict[str, str], timeout_s: float) -> HttpResponse:
        request = urllib.request.Request(url=url, method=method.upper())
        for key, value in headers.items():
            request.add_header(key, value)

        try:
            with urllib.request.urlopen(request, timeout=timeout_s) as response:
                status = response.getcode()
                resp_headers = dict(response.headers.items())
                raw = response.read()
        except urllib.error.HTTPError as exc:
            status = exc.code
            resp_headers = dict(exc.headers.items()) if exc.headers is not None else {}
            raw = exc.read()
        except urllib.error.URLError as exc:
            if isinstance(exc.reason, (socket.timeout, TimeoutError)):
                raise TransportTimeoutError(f"Timed out after {timeout_s:g}s", url=url) from exc
            raise TransportConnectionError(f"Connection failed: {exc.reason}", url=url) from exc
        except TimeoutError as exc:
            raise TransportTimeoutError(f"Timed out after {timeout_s:g}s", url=url) from exc
        except (OSError, http.client.HTTPException) as exc:
            raise TransportConnectionError(f"Connection failed: {exc}", url=url) from exc

        return HttpResponse(url=url, status_code=status, body=raw, headers=resp_headers)


class HttpClient:
    """
    Shared client used by every probe and verifier.

    Holds no per-request state, so one instance can serve concurrent verifiers.
    It never retries; retry policy belongs to the caller.
    """

    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        headers: dict[str, str] | None = None,
        transport: Transport | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self._default_headers = dict(headers or {})
        self._transport: Transport = transport or UrllibTransport()

    def send(self, method: str, url: str, headers: dict[str, str] | None = None) -> HttpResponse:
        req_headers = {"Accept": "application/json", **self._default_headers}
        if headers:
            req_headers.update(headers)
        try:
            return self._transport.send(method.upper(), url, req_headers, self.timeout_s)
        except TransportError:
            raise
        except TimeoutError as exc:
            raise TransportTimeoutError(f"Timed out after {self.timeout_s:g}s", url=url) from exc
        except ConnectionError as exc:
            raise TransportConnectionError(f"Connection failed: {exc}", url=url) from exc

    def get(self, url: str, headers: dict[str, str] | None = None) -> HttpResponse:
        return self.send("GET", url, headers)
