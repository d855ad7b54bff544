from __future__ import annotations

import unittest

from _support import AGENT_URL, QUERY_URL, FakeJaeger

from jaeger_conformance import endpoints
from jaeger_conformance.errors import DecodeError, ExpectationError
from jaeger_conformance.verifiers import (
    verify_sampling_strategy,
    verify_services,
    verify_services_agree,
    verify_services_v3,
)

SAMPLING_URL = endpoints.sampling_url(AGENT_URL, service="whatever")
SERVICES_URL = endpoints.services_url(QUERY_URL)
SERVICES_V3_URL = endpoints.services_v3_url(QUERY_URL)


class TestSamplingVerifier(unittest.TestCase):
    def test_probabilistic_rate_one_passes(self) -> None:
        strategy = verify_sampling_strategy(FakeJaeger().client(), SAMPLING_URL)
        self.assertEqual(strategy.sampling_rate, 1.0)

    def test_rate_mismatch_fails_with_expected_and_actual(self) -> None:
        backend = FakeJaeger(sampling={"strategyType": "PROBABILISTIC", "probabilisticSampling": {"samplingRate": 0.5}})
        with self.assertRaises(ExpectationError) as ctx:
            verify_sampling_strategy(backend.client(), SAMPLING_URL)
        self.assertEqual(ctx.exception.expected, 1.0)
        self.assertEqual(ctx.exception.actual, 0.5)
        self.assertEqual(ctx.exception.url, SAMPLING_URL)

    def test_rate_limiting_strategy_fails(self) -> None:
        backend = FakeJaeger(sampling={"strategyType": 1, "rateLimitingSampling": {"maxTracesPerSecond": 2}})
        with self.assertRaises(ExpectationError) as ctx:
            verify_sampling_strategy(backend.client(), SAMPLING_URL)
        self.assertEqual(ctx.exception.actual, "RATE_LIMITING")

    def test_missing_probabilistic_section_fails(self) -> None:
        backend = FakeJaeger(sampling={"strategyType": 0})
        with self.assertRaises(ExpectationError) as ctx:
            verify_sampling_strategy(backend.client(), SAMPLING_URL)
        self.assertIn("probabilisticSampling", ctx.exception.message)

    def test_malformed_payload_is_a_decode_error(self) -> None:
        backend = FakeJaeger(sampling={"strategyType": 0, "probabilisticSampling": {"samplingRate": "all"}})
        with self.assertRaises(DecodeError):
            verify_sampling_strategy(backend.client(), SAMPLING_URL)

    def test_idempotent(self) -> None:
        client = FakeJaeger(sampling={"strategyType": 0, "probabilisticSampling": {"samplingRate": 0.5}}).client()
        outcomes = []
        for _ in range(3):
            try:
                verify_sampling_strategy(client, SAMPLING_URL)
                outcomes.append("pass")
            except ExpectationError as exc:
                outcomes.append(str(exc))
        self.assertEqual(len(set(outcomes)), 1)
        self.assertNotEqual(outcomes[0], "pass")


class TestServicesVerifiers(unittest.TestCase):
    def test_v3_singleton_passes(self) -> None:
        services = verify_services_v3(FakeJaeger().client(), SERVICES_V3_URL, expected=["jaeger-query"])
        self.assertEqual(services.services, ["jaeger-query"])

    def test_v3_mismatch_names_both_sets(self) -> None:
        backend = FakeJaeger(services_v3=["other-service"])
        with self.assertRaises(ExpectationError) as ctx:
            verify_services_v3(backend.client(), SERVICES_V3_URL, expected=["jaeger-query"])
        self.assertEqual(ctx.exception.expected, ["jaeger-query"])
        self.assertEqual(ctx.exception.actual, ["other-service"])
        self.assertIn("['other-service']", str(ctx.exception))
        self.assertIn("['jaeger-query']", str(ctx.exception))

    def test_set_comparison_ignores_order(self) -> None:
        backend = FakeJaeger(services=["b", "a"])
        verify_services(backend.client(), SERVICES_URL, expected=("a", "b"))
        verify_services_v3(backend.client(), SERVICES_V3_URL, expected=("a", "b"))

    def test_rest_services_mismatch(self) -> None:
        with self.assertRaises(ExpectationError):
            verify_services(FakeJaeger(services=[]).client(), SERVICES_URL, expected=["jaeger-query"])

    def test_surfaces_agree(self) -> None:
        self.assertEqual(verify_services_agree(["jaeger-query"], ["jaeger-query"]), {"jaeger-query"})

    def test_surfaces_agree_ignoring_order_and_duplicates(self) -> None:
        self.assertEqual(verify_services_agree(["b", "a", "a"], ["a", "b"]), {"a", "b"})

    def test_surfaces_disagree(self) -> None:
        with self.assertRaises(ExpectationError) as ctx:
            verify_services_agree(["jaeger-query"], ["other-service"], url=SERVICES_V3_URL)
        self.assertIn("disagree", ctx.exception.message)
        self.assertEqual(ctx.exception.expected, ["jaeger-query"])
        self.assertEqual(ctx.exception.actual, ["other-service"])
        self.assertEqual(ctx.exception.url, SERVICES_V3_URL)

    def test_v3_idempotent(self) -> None:
        client = FakeJaeger(services_v3=["other-service"]).client()
        outcomes = []
        for _ in range(3):
            try:
                verify_services_v3(client, SERVICES_V3_URL, expected=["jaeger-query"])
                outcomes.append("pass")
            except ExpectationError as exc:
                outcomes.append(str(exc))
        self.assertEqual(len(set(outcomes)), 1)
        self.assertNotEqual(outcomes[0], "pass")

    def test_v3_repeated_pass(self) -> None:
        client = FakeJaeger().client()
        results = [verify_services_v3(client, SERVICES_V3_URL, expected=["jaeger-query"]) for _ in range(3)]
        self.assertEqual({tuple(r.services) for r in results}, {("jaeger-query",)})

    def test_non_200_fails(self) -> None:
        with self.assertRaises(ExpectationError) as ctx:
            verify_services_v3(FakeJaeger().client(), QUERY_URL + "/api/v3/missing", expected=["jaeger-query"])
        self.assertEqual(ctx.exception.actual, 404)


if __name__ == "__main__":
    unittest.main()
