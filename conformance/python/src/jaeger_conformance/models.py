"""
Typed views of the three wire formats.

Each family of models follows the naming convention of its encoding:

- query REST JSON uses Jaeger's UI model names (`traceID`, `spanID`, `operationName`),
- the sampling endpoint is Thrift structs serialized as JSON (lowerCamelCase, enums as
  ordinal or name),
- the v3 API is protobuf mapped to JSON (lowerCamelCase, the original proto field name is
  accepted too, absent repeated fields mean empty).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _none_as_empty(value: Any) -> Any:
    return [] if value is None else value


class _QueryModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class KeyValue(_QueryModel):
    key: str
    type: str = "string"
    value: Any = None


class Log(_QueryModel):
    timestamp: int
    log_fields: list[KeyValue] = Field(default_factory=list, alias="fields")

    fields_none = field_validator("log_fields", mode="before")(_none_as_empty)


class Reference(_QueryModel):
    ref_type: str = Field(alias="refType")
    trace_id: str = Field(alias="traceID")
    span_id: str = Field(alias="spanID")


class Process(_QueryModel):
    service_name: str = Field(alias="serviceName")
    tags: list[KeyValue] = Field(default_factory=list)

    tags_none = field_validator("tags", mode="before")(_none_as_empty)


class Span(_QueryModel):
    trace_id: str = Field(alias="traceID")
    span_id: str = Field(alias="spanID")
    operation_name: str = Field(default="", alias="operationName")
    references: list[Reference] = Field(default_factory=list)
    start_time: int = Field(default=0, alias="startTime")
    duration: int = 0
    tags: list[KeyValue] = Field(default_factory=list)
    logs: list[Log] = Field(default_factory=list)
    process_id: str | None = Field(default=None, alias="processID")
    warnings: list[str] = Field(default_factory=list)

    lists_none = field_validator("references", "tags", "logs", "warnings", mode="before")(_none_as_empty)

    def tag(self, key: str) -> Any:
        for kv in self.tags:
            if kv.key == key:
                return kv.value
        return None


class Trace(_QueryModel):
    trace_id: str = Field(alias="traceID")
    spans: list[Span] = Field(default_factory=list)
    processes: dict[str, Process] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    lists_none = field_validator("spans", "warnings", mode="before")(_none_as_empty)

    @field_validator("processes", mode="before")
    @classmethod
    def processes_none(cls, value: Any) -> Any:
        return {} if value is None else value

    def has_tag(self, key: str, value: str) -> bool:
        return any(span.tag(key) is not None and str(span.tag(key)) == value for span in self.spans)

    def service_names(self) -> set[str]:
        return {process.service_name for process in self.processes.values()}


class StructuredError(_QueryModel):
    code: int = 0
    msg: str = ""
    trace_id: str | None = Field(default=None, alias="traceID")


class TraceQueryResponse(_QueryModel):
    """`GET /api/traces` envelope."""

    data: list[Trace] = Field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0
    errors: list[StructuredError] = Field(default_factory=list)

    lists_none = field_validator("data", "errors", mode="before")(_none_as_empty)


class ServicesResponse(_QueryModel):
    """`GET /api/services` envelope."""

    data: list[str] = Field(default_factory=list)
    total: int = 0
    errors: list[StructuredError] = Field(default_factory=list)

    lists_none = field_validator("data", "errors", mode="before")(_none_as_empty)


class _ThriftModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", alias_generator=to_camel, populate_by_name=True)


class SamplingStrategyType(str, Enum):
    PROBABILISTIC = "PROBABILISTIC"
    RATE_LIMITING = "RATE_LIMITING"

    @classmethod
    def from_wire(cls, value: Any) -> "SamplingStrategyType":
        if isinstance(value, cls):
            return value
        # Thrift enums travel as their ordinal or their name depending on the encoder.
        if isinstance(value, int) and not isinstance(value, bool):
            ordinals = list(cls)
            if 0 <= value < len(ordinals):
                return ordinals[value]
            raise ValueError(f"unknown SamplingStrategyType ordinal {value}")
        if isinstance(value, str):
            try:
                return cls(value.upper())
            except ValueError:
                raise ValueError(f"unknown SamplingStrategyType {value!r}") from None
        raise ValueError(f"unsupported SamplingStrategyType value {value!r}")


class ProbabilisticSamplingStrategy(_ThriftModel):
    sampling_rate: float


class RateLimitingSamplingStrategy(_ThriftModel):
    max_traces_per_second: int


class OperationSamplingStrategy(_ThriftModel):
    operation: str
    probabilistic_sampling: ProbabilisticSamplingStrategy


class PerOperationSamplingStrategies(_ThriftModel):
    default_sampling_probability: float
    default_lower_bound_traces_per_second: float
    per_operation_strategies: list[OperationSamplingStrategy] = Field(default_factory=list)
    default_upper_bound_traces_per_second: float | None = None

    ops_none = field_validator("per_operation_strategies", mode="before")(_none_as_empty)


class SamplingStrategyResponse(_ThriftModel):
    strategy_type: SamplingStrategyType = SamplingStrategyType.PROBABILISTIC
    probabilistic_sampling: ProbabilisticSamplingStrategy | None = None
    rate_limiting_sampling: RateLimitingSamplingStrategy | None = None
    operation_sampling: PerOperationSamplingStrategies | None = None

    @field_validator("strategy_type", mode="before")
    @classmethod
    def parse_strategy_type(cls, value: Any) -> SamplingStrategyType:
        return SamplingStrategyType.from_wire(value)

    @property
    def sampling_rate(self) -> float | None:
        if self.probabilistic_sampling is None:
            return None
        return self.probabilistic_sampling.sampling_rate


class _ProtoJsonModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", alias_generator=to_camel, populate_by_name=True)


class GetServicesResponse(_ProtoJsonModel):
    """`jaeger.api_v3.GetServicesResponse`."""

    services: list[str] = Field(default_factory=list)

    services_none = field_validator("services", mode="before")(_none_as_empty)
