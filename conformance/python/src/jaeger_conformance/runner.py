from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import structlog

from jaeger_conformance import DEBUG_ID_HEADER, endpoints
from jaeger_conformance.errors import ConformanceError, DeadlineExceededError
from jaeger_conformance.http import HttpClient, HttpResponse
from jaeger_conformance.ingest import new_correlation_tag, trigger_trace
from jaeger_conformance.models import GetServicesResponse, ServicesResponse, Trace
from jaeger_conformance.poller import poll_for_trace
from jaeger_conformance.probes import Sleep, check_static_asset, wait_until_ready
from jaeger_conformance.report import CheckResult, ConformanceReport, HttpExchange, ResultStatus, Timer
from jaeger_conformance.verifiers import (
    verify_sampling_strategy,
    verify_services,
    verify_services_agree,
    verify_services_v3,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RunnerOptions:
    timeout_s: float = 1.0
    ready_attempts: int = 10
    ready_interval_s: float = 1.0
    poll_attempts: int = 20
    poll_interval_s: float = 1.0
    expected_trace_count: int = 1
    expected_span_count: int = 1
    correlation_tag: str | None = None
    correlation_header: str = DEBUG_ID_HEADER
    traced_service: str = "jaeger-query"
    sampling_service: str = "whatever"
    expected_services: tuple[str, ...] = ("jaeger-query",)
    expected_sampling_rate: float = 1.0
    parallel_verifiers: bool = False
    deadline_s: float | None = None
    headers: dict[str, str] | None = None


class ScenarioState(str, Enum):
    INIT = "init"
    READINESS_CHECKED = "readiness_checked"
    ASSET_CHECKED = "asset_checked"
    TRACE_TRIGGERED = "trace_triggered"
    TRACE_CONFIRMED = "trace_confirmed"
    PROTOCOLS_VERIFIED = "protocols_verified"
    DONE = "done"
    FAILED = "failed"


_ORDER = [
    ScenarioState.INIT,
    ScenarioState.READINESS_CHECKED,
    ScenarioState.ASSET_CHECKED,
    ScenarioState.TRACE_TRIGGERED,
    ScenarioState.TRACE_CONFIRMED,
    ScenarioState.PROTOCOLS_VERIFIED,
    ScenarioState.DONE,
]

Step = Callable[[], list[CheckResult]]

# Protocol checks in report order. The agreement check compares the two services payloads.
_VERIFIER_CHECKS: list[tuple[str, str]] = [
    ("protocol.sampling", "GET /sampling (Thrift JSON)"),
    ("protocol.services", "GET /api/services (REST JSON)"),
    ("protocol.services_v3", "GET /api/v3/services (protobuf JSON)"),
    ("protocol.services_agree", "Query API and api_v3 agree on services"),
]


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _exchange(resp: HttpResponse, *, headers: dict[str, str] | None = None) -> HttpExchange:
    return HttpExchange(
        method="GET",
        url=resp.url,
        request_headers=headers,
        status_code=resp.status_code,
        content_type=resp.content_type(),
    )


def _mk_check(
    *,
    check_id: str,
    name: str,
    status: ResultStatus,
    message: str,
    exchange: HttpExchange | None = None,
    errors: list[str] | None = None,
    attempts: int | None = None,
    timer: Timer | None = None,
) -> CheckResult:
    return CheckResult(
        check_id=check_id,
        name=name,
        status=status,
        message=message,
        exchange=exchange,
        errors=errors or [],
        attempts=attempts,
        duration_ms=None if timer is None else timer.elapsed_ms(),
    )


def _failed(check_id: str, name: str, exc: ConformanceError, timer: Timer) -> CheckResult:
    return _mk_check(
        check_id=check_id,
        name=name,
        status=ResultStatus.FAIL,
        message=exc.message,
        exchange=None if exc.url is None else HttpExchange(method="GET", url=exc.url),
        errors=exc.details(),
        attempts=getattr(exc, "attempts", None),
        timer=timer,
    )


class ScenarioRunner:
    """
    Runs the all-in-one scenario as an explicit state machine.

    `INIT -> READINESS_CHECKED -> ASSET_CHECKED -> TRACE_TRIGGERED -> TRACE_CONFIRMED ->
    PROTOCOLS_VERIFIED -> DONE`, with `FAILED` reachable from every non-terminal state.
    The sequential phases are fail-fast: a failure skips everything after it. The protocol
    verifiers are independent, so all of them run and their failures are aggregated; the
    services agreement check only runs once both services payloads decoded.
    """

    def __init__(
        self,
        *,
        query_url: str,
        agent_url: str,
        options: RunnerOptions | None = None,
        client: HttpClient | None = None,
        sleep: Sleep = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._options = options or RunnerOptions()
        self._client = client or HttpClient(timeout_s=self._options.timeout_s, headers=self._options.headers)
        self._query_url = query_url
        self._agent_url = agent_url
        self._sleep = sleep
        self._clock = clock
        self._tag = self._options.correlation_tag or new_correlation_tag()
        self._state = ScenarioState.INIT
        self._states: list[ScenarioState] = [ScenarioState.INIT]
        self._deadline: float | None = None

    @property
    def state(self) -> ScenarioState:
        return self._state

    @property
    def correlation_tag(self) -> str:
        return self._tag

    def _transition(self, target: ScenarioState) -> None:
        if self._state in {ScenarioState.DONE, ScenarioState.FAILED}:
            raise RuntimeError(f"Scenario already finished in state {self._state.value}")
        if target != ScenarioState.FAILED and _ORDER.index(target) != _ORDER.index(self._state) + 1:
            raise RuntimeError(f"Invalid transition {self._state.value} -> {target.value}")
        logger.info("Scenario transition", source=self._state.value, target=target.value)
        self._state = target
        self._states.append(target)

    def run(self) -> ConformanceReport:
        if self._state != ScenarioState.INIT:
            raise RuntimeError("ScenarioRunner.run() can only be called once")
        started = _epoch_ms()
        if self._options.deadline_s is not None:
            self._deadline = self._clock() + self._options.deadline_s

        phases: list[tuple[ScenarioState, str, str, Step]] = [
            (ScenarioState.READINESS_CHECKED, "readiness.query", "GET / (readiness)", self._check_readiness),
            (ScenarioState.ASSET_CHECKED, "readiness.favicon", "GET /favicon.ico", self._check_favicon),
            (ScenarioState.TRACE_TRIGGERED, "ingest.trigger", "GET /api/services with debug id", self._trigger_trace),
            (ScenarioState.TRACE_CONFIRMED, "query.trace", "GET /api/traces (poll)", self._confirm_trace),
        ]

        results: list[CheckResult] = []
        for index, (target, check_id, name, step) in enumerate(phases):
            expired = self._check_deadline(check_id)
            if expired is not None:
                results.append(expired)
                pending = [(cid, n) for _, cid, n, _ in phases[index:]]
                return self._halt(started, results, cause=expired.check_id, pending=pending)

            phase_results = self._run_step(check_id, name, step)
            results.extend(phase_results)
            failed = next((r for r in phase_results if r.status == ResultStatus.FAIL), None)
            if failed is not None:
                pending = [(cid, n) for _, cid, n, _ in phases[index + 1 :]]
                return self._halt(started, results, cause=failed.check_id, pending=pending)
            self._transition(target)

        expired = self._check_deadline("protocol verifiers")
        if expired is not None:
            results.append(expired)
            return self._halt(started, results, cause=expired.check_id, pending=[])

        verifier_results = self._run_verifiers()
        results.extend(verifier_results)
        if any(r.status == ResultStatus.FAIL for r in verifier_results):
            self._transition(ScenarioState.FAILED)
        else:
            self._transition(ScenarioState.PROTOCOLS_VERIFIED)
            self._transition(ScenarioState.DONE)
        return self._final_report(started, results)

    def _halt(
        self,
        started: int,
        results: list[CheckResult],
        *,
        cause: str,
        pending: list[tuple[str, str]],
    ) -> ConformanceReport:
        """Fails the scenario and records every check that will not run as skipped."""

        self._transition(ScenarioState.FAILED)
        results.extend(
            _mk_check(check_id=cid, name=n, status=ResultStatus.SKIP, message=f"Skipped: {cause} failed")
            for cid, n in [*pending, *_VERIFIER_CHECKS]
        )
        return self._final_report(started, results)

    def _final_report(self, started: int, results: list[CheckResult]) -> ConformanceReport:
        report = ConformanceReport(
            query_url=self._query_url,
            agent_url=self._agent_url,
            correlation_tag=self._tag,
            started_at_epoch_ms=started,
            finished_at_epoch_ms=_epoch_ms(),
            results=results,
            states=[s.value for s in self._states],
        )
        logger.info("Scenario finished", ok=report.ok, state=report.final_state, counts=report.counts())
        return report

    def _run_step(self, check_id: str, name: str, step: Step) -> list[CheckResult]:
        timer = Timer()
        try:
            return step()
        except ConformanceError as exc:
            return [_failed(check_id, name, exc, timer)]
        except Exception as exc:
            logger.exception("Unhandled runner error", check_id=check_id)
            return [
                _mk_check(
                    check_id="runner.exception",
                    name=f"Unhandled runner error in {check_id}",
                    status=ResultStatus.FAIL,
                    message=f"{exc.__class__.__name__}: {exc}",
                    timer=timer,
                )
            ]

    def _check_deadline(self, phase: str) -> CheckResult | None:
        if self._deadline is None or self._clock() <= self._deadline:
            return None
        exc = DeadlineExceededError(self._options.deadline_s or 0.0, phase=phase)
        logger.warning("Scenario deadline exceeded", phase=phase, deadline_s=self._options.deadline_s)
        return _failed("runner.deadline", "Scenario deadline", exc, Timer())

    def _check_readiness(self) -> list[CheckResult]:
        timer = Timer()
        outcome = wait_until_ready(
            self._client,
            endpoints.health_url(self._query_url),
            max_attempts=self._options.ready_attempts,
            interval_s=self._options.ready_interval_s,
            sleep=self._sleep,
        )
        return [
            _mk_check(
                check_id="readiness.query",
                name="GET / (readiness)",
                status=ResultStatus.PASS,
                message="OK",
                exchange=None if outcome.response is None else _exchange(outcome.response),
                attempts=outcome.attempts,
                timer=timer,
            )
        ]

    def _check_favicon(self) -> list[CheckResult]:
        timer = Timer()
        outcome = check_static_asset(self._client, endpoints.favicon_url(self._query_url))
        return [
            _mk_check(
                check_id="readiness.favicon",
                name="GET /favicon.ico",
                status=ResultStatus.PASS,
                message="OK",
                exchange=None if outcome.response is None else _exchange(outcome.response),
                attempts=outcome.attempts,
                timer=timer,
            )
        ]

    def _trigger_trace(self) -> list[CheckResult]:
        timer = Timer()
        headers = {self._options.correlation_header: self._tag}
        resp = trigger_trace(
            self._client,
            endpoints.services_url(self._query_url),
            self._tag,
            header=self._options.correlation_header,
        )
        return [
            _mk_check(
                check_id="ingest.trigger",
                name="GET /api/services with debug id",
                status=ResultStatus.PASS,
                message=f"Sent {self._options.correlation_header}={self._tag}",
                exchange=_exchange(resp, headers=headers),
                timer=timer,
            )
        ]

    def _confirm_trace(self) -> list[CheckResult]:
        timer = Timer()
        url = endpoints.trace_search_url(
            self._query_url,
            service=self._options.traced_service,
            tag_key=self._options.correlation_header,
            tag_value=self._tag,
        )
        outcome = poll_for_trace(
            self._client,
            url,
            expected_count=self._options.expected_trace_count,
            expected_span_count=self._options.expected_span_count,
            max_attempts=self._options.poll_attempts,
            interval_s=self._options.poll_interval_s,
            sleep=self._sleep,
        )
        trace: Trace | None = outcome.value
        exchange = None if outcome.response is None else _exchange(outcome.response)
        if trace is None:
            message = f"Found {self._options.expected_trace_count} trace(s)"
        else:
            message = f"Trace {trace.trace_id} with {len(trace.spans)} span(s)"
        out = [
            _mk_check(
                check_id="query.trace",
                name="GET /api/traces (poll)",
                status=ResultStatus.PASS,
                message=message,
                exchange=exchange,
                attempts=outcome.attempts,
                timer=timer,
            )
        ]
        if trace is not None and not trace.has_tag(self._options.correlation_header, self._tag):
            out.append(
                _mk_check(
                    check_id="query.trace.tag",
                    name="Trace carries the correlation tag",
                    status=ResultStatus.WARN,
                    message=f"No span of trace {trace.trace_id} has tag {self._options.correlation_header}={self._tag}",
                    exchange=exchange,
                )
            )
        return out

    def _verifiers(self) -> list[tuple[str, str, Callable[[], Any]]]:
        services_url = endpoints.services_url(self._query_url)
        services_v3_url = endpoints.services_v3_url(self._query_url)
        sampling_url = endpoints.sampling_url(self._agent_url, service=self._options.sampling_service)
        expected = self._options.expected_services
        (sampling_id, sampling_name), (services_id, services_name), (v3_id, v3_name) = _VERIFIER_CHECKS[:3]
        return [
            (
                sampling_id,
                sampling_name,
                lambda: verify_sampling_strategy(
                    self._client, sampling_url, expected_rate=self._options.expected_sampling_rate
                ),
            ),
            (services_id, services_name, lambda: verify_services(self._client, services_url, expected=expected)),
            (v3_id, v3_name, lambda: verify_services_v3(self._client, services_v3_url, expected=expected)),
        ]

    def _run_verifiers(self) -> list[CheckResult]:
        verifiers = self._verifiers()
        decoded: dict[str, Any] = {}

        def run_one(check_id: str, name: str, verify: Callable[[], Any]) -> list[CheckResult]:
            def step() -> list[CheckResult]:
                timer = Timer()
                decoded[check_id] = verify()
                return [_mk_check(check_id=check_id, name=name, status=ResultStatus.PASS, message="OK", timer=timer)]

            return self._run_step(check_id, name, step)

        if self._options.parallel_verifiers:
            with ThreadPoolExecutor(max_workers=len(verifiers)) as pool:
                futures = [pool.submit(run_one, check_id, name, verify) for check_id, name, verify in verifiers]
                results = [r for future in futures for r in future.result()]
        else:
            results = [r for check_id, name, verify in verifiers for r in run_one(check_id, name, verify)]

        results.extend(self._check_services_agree(decoded.get("protocol.services"), decoded.get("protocol.services_v3")))
        return results

    def _check_services_agree(
        self, rest: ServicesResponse | None, v3: GetServicesResponse | None
    ) -> list[CheckResult]:
        check_id, name = _VERIFIER_CHECKS[3]
        if rest is None or v3 is None:
            cause = "protocol.services" if rest is None else "protocol.services_v3"
            return [_mk_check(check_id=check_id, name=name, status=ResultStatus.SKIP, message=f"Skipped: {cause} failed")]

        def step() -> list[CheckResult]:
            timer = Timer()
            services = verify_services_agree(rest.data, v3.services, url=endpoints.services_v3_url(self._query_url))
            return [
                _mk_check(
                    check_id=check_id,
                    name=name,
                    status=ResultStatus.PASS,
                    message=f"Both surfaces report {sorted(services)}",
                    timer=timer,
                )
            ]

        return self._run_step(check_id, name, step)
