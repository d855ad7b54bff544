from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from jaeger_conformance.errors import AssetMissingError, NotReadyError, TransportError
from jaeger_conformance.http import HttpClient, HttpResponse

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], None]


@dataclass(frozen=True)
class ProbeOutcome:
    attempts: int
    elapsed_ms: int
    response: HttpResponse | None = None
    value: Any = None


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def wait_until_ready(
    client: HttpClient,
    url: str,
    *,
    max_attempts: int = 10,
    interval_s: float = 1.0,
    sleep: Sleep = time.sleep,
) -> ProbeOutcome:
    """
    GET `url` until the connection succeeds.

    Any completed HTTP exchange counts as ready, whatever its status code; only transport
    failures are retried. Raises `NotReadyError` once `max_attempts` have failed.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    start = time.perf_counter()
    last_error: TransportError | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            resp = client.get(url)
        except TransportError as exc:
            last_error = exc
            logger.info("Health-check unsuccessful", url=url, attempt=attempt, max_attempts=max_attempts, error=str(exc))
            if attempt < max_attempts:
                sleep(interval_s)
            continue
        logger.info("Health-check successful", url=url, attempt=attempt, status_code=resp.status_code)
        return ProbeOutcome(attempts=attempt, elapsed_ms=_elapsed_ms(start), response=resp)
    raise NotReadyError(url, attempts=max_attempts, last_error=last_error)


def check_static_asset(client: HttpClient, url: str) -> ProbeOutcome:
    """Single attempt; the asset must be served with HTTP 200."""

    start = time.perf_counter()
    try:
        resp = client.get(url, headers={"Accept": "*/*"})
    except TransportError as exc:
        logger.warning("Static asset check failed", url=url, error=str(exc))
        raise AssetMissingError(url, reason=str(exc)) from exc
    if resp.status_code != 200:
        logger.warning("Static asset check failed", url=url, status_code=resp.status_code)
        raise AssetMissingError(url, status_code=resp.status_code)
    logger.info("Static asset check successful", url=url, size=len(resp.body))
    return ProbeOutcome(attempts=1, elapsed_ms=_elapsed_ms(start), response=resp)
