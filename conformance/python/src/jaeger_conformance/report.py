from __future__ import annotations

import json
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ResultStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARN = "WARN"
    SKIP = "SKIP"


class Timer:
    def __init__(self) -> None:
        self._start = time.perf_counter()

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)


def _omit_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class HttpExchange:
    method: str
    url: str
    request_headers: dict[str, str] | None = None
    status_code: int | None = None
    content_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _omit_none(
            {
                "method": self.method,
                "url": self.url,
                "request_headers": self.request_headers,
                "status_code": self.status_code,
                "content_type": self.content_type,
            }
        )


@dataclass(frozen=True)
class CheckResult:
    check_id: str
    name: str
    status: ResultStatus
    message: str
    exchange: HttpExchange | None = None
    errors: list[str] = field(default_factory=list)
    attempts: int | None = None
    duration_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return _omit_none(
            {
                "check_id": self.check_id,
                "name": self.name,
                "status": self.status.value,
                "message": self.message,
                "exchange": None if self.exchange is None else self.exchange.to_dict(),
                "errors": self.errors or None,
                "attempts": self.attempts,
                "duration_ms": self.duration_ms,
            }
        )


@dataclass(frozen=True)
class ConformanceReport:
    query_url: str
    agent_url: str
    correlation_tag: str
    started_at_epoch_ms: int
    finished_at_epoch_ms: int
    results: list[CheckResult]
    states: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.status != ResultStatus.FAIL for r in self.results)

    def ok_strict(self) -> bool:
        return all(r.status == ResultStatus.PASS for r in self.results)

    @property
    def final_state(self) -> str | None:
        return self.states[-1] if self.states else None

    def counts(self) -> dict[str, int]:
        out = {status.value: 0 for status in ResultStatus}
        for r in self.results:
            out[r.status.value] += 1
        return out

    def failures(self) -> list[CheckResult]:
        return [r for r in self.results if r.status == ResultStatus.FAIL]

    def result(self, check_id: str) -> CheckResult | None:
        for r in self.results:
            if r.check_id == check_id:
                return r
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query_url": self.query_url,
            "agent_url": self.agent_url,
            "correlation_tag": self.correlation_tag,
            "started_at_epoch_ms": self.started_at_epoch_ms,
            "finished_at_epoch_ms": self.finished_at_epoch_ms,
            "states": list(self.states),
            "counts": self.counts(),
            "ok": self.ok,
            "results": [r.to_dict() for r in self.results],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=False) + "\n"

    def to_text(self) -> str:
        lines = [
            f"query={self.query_url} agent={self.agent_url} tag={self.correlation_tag}",
            f"counts={self.counts()} ok={self.ok} state={self.final_state}",
        ]
        for r in self.results:
            suffix = "" if r.attempts is None else f" (attempts={r.attempts})"
            lines.append(f"- {r.status.value} {r.check_id}: {r.message}{suffix}")
            if r.status in {ResultStatus.FAIL, ResultStatus.WARN}:
                if r.exchange is not None:
                    status = "" if r.exchange.status_code is None else f" -> {r.exchange.status_code}"
                    lines.append(f"    - {r.exchange.method} {r.exchange.url}{status}")
                for e in r.errors:
                    lines.append(f"    - {e}")
        return "\n".join(lines) + "\n"

    def to_junit_xml(self) -> str:
        return reports_to_junit_xml([self])


def reports_to_junit_xml(reports: list[ConformanceReport]) -> str:
    suites = ET.Element("testsuites")
    for report in reports:
        counts = report.counts()
        duration_s = (report.finished_at_epoch_ms - report.started_at_epoch_ms) / 1000
        suite = ET.SubElement(
            suites,
            "testsuite",
            name=f"jaeger-conformance {report.query_url}",
            tests=str(len(report.results)),
            failures=str(counts[ResultStatus.FAIL.value]),
            skipped=str(counts[ResultStatus.SKIP.value]),
            time=f"{duration_s:.3f}",
        )
        for r in report.results:
            case = ET.SubElement(
                suite,
                "testcase",
                classname=r.check_id.split(".", 1)[0],
                name=r.check_id,
                time=f"{(r.duration_ms or 0) / 1000:.3f}",
            )
            if r.status == ResultStatus.FAIL:
                failure = ET.SubElement(case, "failure", message=r.message)
                failure.text = "\n".join(r.errors) or None
            elif r.status == ResultStatus.SKIP:
                ET.SubElement(case, "skipped", message=r.message)
            elif r.status == ResultStatus.WARN:
                out = ET.SubElement(case, "system-out")
                out.text = "\n".join([f"WARN: {r.message}", *r.errors])
    return ET.tostring(suites, encoding="unicode")
