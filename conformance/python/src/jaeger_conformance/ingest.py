from __future__ import annotations

import uuid

import structlog

from jaeger_conformance import DEBUG_ID_HEADER
from jaeger_conformance.http import HttpClient, HttpResponse

logger = structlog.get_logger(__name__)


def new_correlation_tag() -> str:
    return "conformance-" + uuid.uuid4().hex[:12]


def trigger_trace(client: HttpClient, url: str, tag: str, *, header: str = DEBUG_ID_HEADER) -> HttpResponse:
    """
    Issue one request carrying the debug-id header so the backend records a trace for it.

    The body is not inspected; the trace becomes queryable only after asynchronous indexing.
    Transport failures propagate as `TransportError`.
    """

    resp = client.get(url, headers={header: tag})
    logger.info("Trace triggered", url=url, header=header, tag=tag, status_code=resp.status_code)
    return resp
