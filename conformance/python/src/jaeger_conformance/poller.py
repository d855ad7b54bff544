from __future__ import annotations

import time

import structlog

from jaeger_conformance.codecs import decode_trace_query
from jaeger_conformance.errors import ExpectationError, NotFoundError, TransportError
from jaeger_conformance.http import HttpClient, HttpResponse
from jaeger_conformance.probes import ProbeOutcome, Sleep

logger = structlog.get_logger(__name__)


def poll_for_trace(
    client: HttpClient,
    url: str,
    *,
    expected_count: int = 1,
    expected_span_count: int = 1,
    max_attempts: int = 20,
    interval_s: float = 1.0,
    sleep: Sleep = time.sleep,
) -> ProbeOutcome:
    """
    Poll a tag-scoped trace search until it returns exactly `expected_count` traces.

    Transport errors and 5xx responses count as "not indexed yet" and are retried within the
    budget. A 4xx response or an undecodable body fails immediately, as does a confirmed trace
    whose span count differs from `expected_span_count`.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    start = time.perf_counter()
    last_count: int | None = None
    for attempt in range(1, max_attempts + 1):
        resp = _fetch(client, url, attempt=attempt)
        if resp is not None:
            decoded = decode_trace_query(resp.body, url=url)
            last_count = len(decoded.data)
            logger.info("Trace poll", url=url, attempt=attempt, traces=last_count, expected=expected_count)
            if last_count == expected_count:
                trace = decoded.data[0] if decoded.data else None
                if trace is not None and len(trace.spans) != expected_span_count:
                    raise ExpectationError(
                        f"Trace {trace.trace_id} has {len(trace.spans)} span(s), expected {expected_span_count}",
                        expected=expected_span_count,
                        actual=len(trace.spans),
                        url=url,
                    )
                return ProbeOutcome(
                    attempts=attempt,
                    elapsed_ms=int((time.perf_counter() - start) * 1000),
                    response=resp,
                    value=trace,
                )
        if attempt < max_attempts:
            sleep(interval_s)
    raise NotFoundError(url, attempts=max_attempts, expected_count=expected_count, last_count=last_count)


def _fetch(client: HttpClient, url: str, *, attempt: int) -> HttpResponse | None:
    try:
        resp = client.get(url)
    except TransportError as exc:
        logger.info("Trace poll transport error", url=url, attempt=attempt, error=str(exc))
        return None
    if resp.status_code >= 500:
        logger.info("Trace poll server error", url=url, attempt=attempt, status_code=resp.status_code)
        return None
    if resp.status_code != 200:
        raise ExpectationError(
            f"Trace query returned HTTP {resp.status_code}",
            expected=200,
            actual=resp.status_code,
            url=url,
        )
    return resp
