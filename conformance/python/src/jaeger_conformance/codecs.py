from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from jaeger_conformance import schemas
from jaeger_conformance.errors import DecodeError
from jaeger_conformance.models import (
    GetServicesResponse,
    SamplingStrategyResponse,
    ServicesResponse,
    TraceQueryResponse,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


@lru_cache(maxsize=1)
def registry() -> schemas.SchemaRegistry:
    return schemas.SchemaRegistry.load()


def _loc(loc: tuple[Any, ...]) -> str:
    out = "$"
    for part in loc:
        out += f"[{part}]" if isinstance(part, int) else f".{part}"
    return out


def _parse_json(body: bytes, *, what: str, url: str | None) -> Any:
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"{what} was not valid JSON", errors=[f"{exc.__class__.__name__}: {exc}"], url=url) from exc


def _decode(body: bytes, model: type[ModelT], *, schema: str, what: str, url: str | None) -> ModelT:
    payload = _parse_json(body, what=what, url=url)
    schema_errors = registry().validate(payload, schema=schema)
    if schema_errors:
        raise DecodeError(f"{what} did not match schema", errors=schema_errors, url=url)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        errors = [f"{_loc(err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise DecodeError(f"{what} could not be decoded", errors=errors, url=url) from exc


def decode_trace_query(body: bytes, *, url: str | None = None) -> TraceQueryResponse:
    return _decode(body, TraceQueryResponse, schema=schemas.TRACE_QUERY_RESPONSE, what="Trace query response", url=url)


def decode_services(body: bytes, *, url: str | None = None) -> ServicesResponse:
    return _decode(body, ServicesResponse, schema=schemas.SERVICES_RESPONSE, what="Services response", url=url)


def decode_sampling_strategy(body: bytes, *, url: str | None = None) -> SamplingStrategyResponse:
    return _decode(
        body,
        SamplingStrategyResponse,
        schema=schemas.SAMPLING_STRATEGY_RESPONSE,
        what="Sampling strategy response",
        url=url,
    )


def decode_services_v3(body: bytes, *, url: str | None = None) -> GetServicesResponse:
    return _decode(body, GetServicesResponse, schema=schemas.GET_SERVICES_RESPONSE, what="GetServicesResponse", url=url)
