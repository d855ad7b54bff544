"""
One verifier per wire surface.

Verifiers make a single request and never retry: they read service-level and configuration
state that is already settled once the trace has been confirmed. Each returns the decoded
payload on success and raises `ExpectationError`, `DecodeError` or `TransportError` otherwise.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from jaeger_conformance.codecs import decode_sampling_strategy, decode_services, decode_services_v3
from jaeger_conformance.errors import ExpectationError
from jaeger_conformance.http import HttpClient, HttpResponse
from jaeger_conformance.models import (
    GetServicesResponse,
    SamplingStrategyResponse,
    SamplingStrategyType,
    ServicesResponse,
)

logger = structlog.get_logger(__name__)


def _get_ok(client: HttpClient, url: str) -> HttpResponse:
    resp = client.get(url)
    if resp.status_code != 200:
        raise ExpectationError(f"Expected HTTP 200, got {resp.status_code}", expected=200, actual=resp.status_code, url=url)
    return resp


def _expect_service_set(surface: str, actual: Iterable[str], expected: Iterable[str], *, url: str) -> None:
    actual_set = set(actual)
    expected_set = set(expected)
    if actual_set != expected_set:
        raise ExpectationError(
            f"{surface} reported services {sorted(actual_set)}, expected {sorted(expected_set)}",
            expected=sorted(expected_set),
            actual=sorted(actual_set),
            url=url,
        )


def verify_sampling_strategy(client: HttpClient, url: str, *, expected_rate: float = 1.0) -> SamplingStrategyResponse:
    resp = _get_ok(client, url)
    strategy = decode_sampling_strategy(resp.body, url=url)
    if strategy.strategy_type is not SamplingStrategyType.PROBABILISTIC:
        raise ExpectationError(
            f"Expected a probabilistic strategy, got {strategy.strategy_type.value}",
            expected=SamplingStrategyType.PROBABILISTIC.value,
            actual=strategy.strategy_type.value,
            url=url,
        )
    if strategy.probabilistic_sampling is None:
        raise ExpectationError("probabilisticSampling is missing", expected={"samplingRate": expected_rate}, actual=None, url=url)
    if strategy.sampling_rate != expected_rate:
        raise ExpectationError(
            f"Sampling rate is {strategy.sampling_rate}, expected {expected_rate}",
            expected=expected_rate,
            actual=strategy.sampling_rate,
            url=url,
        )
    logger.info("Sampling strategy verified", url=url, sampling_rate=strategy.sampling_rate)
    return strategy


def verify_services_v3(client: HttpClient, url: str, *, expected: Iterable[str]) -> GetServicesResponse:
    resp = _get_ok(client, url)
    services = decode_services_v3(resp.body, url=url)
    _expect_service_set("api_v3", services.services, expected, url=url)
    logger.info("api_v3 services verified", url=url, services=services.services)
    return services


def verify_services(client: HttpClient, url: str, *, expected: Iterable[str]) -> ServicesResponse:
    resp = _get_ok(client, url)
    services = decode_services(resp.body, url=url)
    _expect_service_set("Query API", services.data, expected, url=url)
    logger.info("Query API services verified", url=url, services=services.data)
    return services


def verify_services_agree(rest: Iterable[str], v3: Iterable[str], *, url: str | None = None) -> set[str]:
    """Both query surfaces describe the same backend, so their decoded service sets must match."""

    rest_set = set(rest)
    v3_set = set(v3)
    if rest_set != v3_set:
        raise ExpectationError(
            f"Query API and api_v3 disagree on services: {sorted(rest_set)} != {sorted(v3_set)}",
            expected=sorted(rest_set),
            actual=sorted(v3_set),
            url=url,
        )
    return rest_set
