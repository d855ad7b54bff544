from __future__ import annotations

import json
import unittest

from _support import make_trace

from jaeger_conformance.codecs import (
    decode_sampling_strategy,
    decode_services,
    decode_services_v3,
    decode_trace_query,
    registry,
)
from jaeger_conformance.errors import DecodeError
from jaeger_conformance.models import SamplingStrategyType


def _body(payload: object) -> bytes:
    return json.dumps(payload).encode("utf-8")


class TestTraceQueryDecoding(unittest.TestCase):
    def test_decodes_ui_model_names(self) -> None:
        payload = {"data": [make_trace("debug", spans=2)], "total": 1, "limit": 0, "offset": 0, "errors": None}
        decoded = decode_trace_query(_body(payload))

        trace = decoded.data[0]
        self.assertEqual(trace.trace_id, "4f1a6c2b9d0e7f31")
        self.assertEqual([s.span_id for s in trace.spans], ["0000000000000001", "0000000000000002"])
        self.assertEqual(trace.spans[1].references[0].ref_type, "CHILD_OF")
        self.assertEqual(trace.spans[0].operation_name, "/api/services")
        self.assertEqual(trace.service_names(), {"jaeger-query"})
        self.assertTrue(trace.has_tag("jaeger-debug-id", "debug"))
        self.assertFalse(trace.has_tag("jaeger-debug-id", "other"))
        self.assertEqual(decoded.errors, [])

    def test_null_collections_become_empty(self) -> None:
        trace = {"traceID": "ab", "spans": [{"traceID": "ab", "spanID": "cd", "tags": None, "references": None, "logs": None}], "processes": None}
        decoded = decode_trace_query(_body({"data": [trace]}))
        span = decoded.data[0].spans[0]
        self.assertEqual(span.tags, [])
        self.assertEqual(span.references, [])
        self.assertEqual(decoded.data[0].processes, {})

    def test_schema_errors_carry_json_paths(self) -> None:
        payload = {"data": [{"traceID": "ab", "spans": [{"traceID": "ab"}]}]}
        with self.assertRaises(DecodeError) as ctx:
            decode_trace_query(_body(payload), url="http://localhost:16686/api/traces")
        self.assertIn("$.data[0].spans[0]: 'spanID' is a required property", ctx.exception.errors)
        self.assertEqual(ctx.exception.url, "http://localhost:16686/api/traces")

    def test_non_json_body(self) -> None:
        with self.assertRaises(DecodeError) as ctx:
            decode_trace_query(b"\xff\xfe")
        self.assertIn("not valid JSON", ctx.exception.message)


class TestServicesDecoding(unittest.TestCase):
    def test_rest_envelope(self) -> None:
        decoded = decode_services(_body({"data": ["jaeger-query"], "total": 1, "limit": 0, "offset": 0, "errors": None}))
        self.assertEqual(decoded.data, ["jaeger-query"])

    def test_rest_envelope_rejects_non_string_names(self) -> None:
        with self.assertRaises(DecodeError) as ctx:
            decode_services(_body({"data": [1]}))
        self.assertTrue(any(e.startswith("$.data[0]") for e in ctx.exception.errors))

    def test_protobuf_json_services(self) -> None:
        self.assertEqual(decode_services_v3(_body({"services": ["a", "b"]})).services, ["a", "b"])

    def test_protobuf_json_absent_repeated_field_is_empty(self) -> None:
        self.assertEqual(decode_services_v3(_body({})).services, [])
        self.assertEqual(decode_services_v3(_body({"services": None})).services, [])


class TestSamplingDecoding(unittest.TestCase):
    def test_enum_as_ordinal(self) -> None:
        decoded = decode_sampling_strategy(_body({"strategyType": 0, "probabilisticSampling": {"samplingRate": 1}}))
        self.assertIs(decoded.strategy_type, SamplingStrategyType.PROBABILISTIC)
        self.assertEqual(decoded.sampling_rate, 1.0)

    def test_enum_as_name(self) -> None:
        decoded = decode_sampling_strategy(
            _body({"strategyType": "RATE_LIMITING", "rateLimitingSampling": {"maxTracesPerSecond": 5}})
        )
        self.assertIs(decoded.strategy_type, SamplingStrategyType.RATE_LIMITING)
        self.assertEqual(decoded.rate_limiting_sampling.max_traces_per_second, 5)
        self.assertIsNone(decoded.sampling_rate)

    def test_per_operation_strategies(self) -> None:
        payload = {
            "strategyType": 0,
            "probabilisticSampling": {"samplingRate": 0.5},
            "operationSampling": {
                "defaultSamplingProbability": 0.5,
                "defaultLowerBoundTracesPerSecond": 0.1,
                "perOperationStrategies": [{"operation": "/api/services", "probabilisticSampling": {"samplingRate": 1.0}}],
            },
        }
        decoded = decode_sampling_strategy(_body(payload))
        ops = decoded.operation_sampling.per_operation_strategies
        self.assertEqual(ops[0].operation, "/api/services")
        self.assertEqual(ops[0].probabilistic_sampling.sampling_rate, 1.0)

    def test_unknown_enum_is_rejected(self) -> None:
        with self.assertRaises(DecodeError):
            decode_sampling_strategy(_body({"strategyType": 7, "probabilisticSampling": {"samplingRate": 1}}))

    def test_missing_sampling_rate_is_rejected(self) -> None:
        with self.assertRaises(DecodeError) as ctx:
            decode_sampling_strategy(_body({"strategyType": 0, "probabilisticSampling": {}}))
        self.assertIn("$.probabilisticSampling: 'samplingRate' is a required property", ctx.exception.errors)


class TestSchemaRegistry(unittest.TestCase):
    def test_bundled_schemas_load(self) -> None:
        self.assertEqual(
            sorted(registry().store),
            [
                "get_services_response.schema.json",
                "sampling_strategy_response.schema.json",
                "services_response.schema.json",
                "trace_query_response.schema.json",
            ],
        )

    def test_unknown_schema(self) -> None:
        with self.assertRaises(KeyError):
            registry().load_schema("nope.schema.json")


if __name__ == "__main__":
    unittest.main()
