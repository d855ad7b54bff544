from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from jaeger_conformance import DEBUG_ID_HEADER, DEFAULT_AGENT_URL, DEFAULT_QUERY_URL, __version__

if TYPE_CHECKING:
    from jaeger_conformance.report import ConformanceReport
    from jaeger_conformance.runner import RunnerOptions


def _parse_headers(values: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for raw in values:
        if "=" not in raw:
            raise SystemExit(f"Invalid --headers value (expected KEY=VALUE): {raw}")
        key, value = raw.split("=", 1)
        out[key.strip()] = value.strip()
    return out


def _load_headers_file(path: Path) -> dict[str, str]:
    out: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            raise SystemExit(f"Invalid headers file line (expected KEY=VALUE): {line}")
        key, value = stripped.split("=", 1)
        out[key.strip()] = value.strip()
    return out


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return value


def _write_output(report: ConformanceReport, *, fmt: str, out_path: str | None) -> None:
    if fmt == "json":
        text = report.to_json()
    elif fmt == "junit":
        text = report.to_junit_xml() + "\n"
    else:
        text = report.to_text()

    if out_path is None:
        sys.stdout.write(text)
        return
    Path(out_path).write_text(text, encoding="utf-8")
    sys.stdout.write(f"Wrote report: {out_path}\n")


def _exit_code(report: ConformanceReport, *, strict: bool) -> int:
    if strict:
        return 0 if report.ok_strict() else 1
    return 0 if report.ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jaeger-conformance")
    parser.add_argument("--version", action="version", version=f"jaeger-conformance {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Run the all-in-one scenario against a running deployment")
    check.add_argument("--query-url", default=DEFAULT_QUERY_URL)
    check.add_argument("--agent-url", default=DEFAULT_AGENT_URL)
    check.add_argument("--timeout", type=float, default=1.0, help="Per-request timeout in seconds")
    check.add_argument("--ready-attempts", type=_positive_int, default=10)
    check.add_argument("--ready-interval", type=float, default=1.0)
    check.add_argument("--poll-attempts", type=_positive_int, default=20)
    check.add_argument("--poll-interval", type=float, default=1.0)
    check.add_argument("--expected-traces", type=int, default=1)
    check.add_argument("--expected-spans", type=int, default=1)
    check.add_argument("--debug-id", type=str, help="Correlation tag (random when omitted)")
    check.add_argument("--debug-header", default=DEBUG_ID_HEADER)
    check.add_argument("--traced-service", default="jaeger-query")
    check.add_argument("--sampling-service", default="whatever")
    check.add_argument(
        "--expected-service",
        action="append",
        default=[],
        help="Repeatable; defaults to jaeger-query",
    )
    check.add_argument("--expected-sampling-rate", type=float, default=1.0)
    check.add_argument("--parallel-verifiers", action="store_true", help="Run protocol verifiers concurrently")
    check.add_argument("--deadline", type=float, help="Global wall-clock budget for the scenario, in seconds")
    check.add_argument("--headers", action="append", default=[], help="Repeatable KEY=VALUE headers")
    check.add_argument("--headers-file", type=str, help="Path to a KEY=VALUE per line file")
    check.add_argument("--strict", action="store_true", help="Treat WARN/SKIP as failures")
    check.add_argument("--format", default="text", choices=["text", "json", "junit"])
    check.add_argument("--out", type=str, help="Write report to file instead of stdout")
    check.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    return parser


def options_from_args(args: argparse.Namespace) -> RunnerOptions:
    from jaeger_conformance.runner import RunnerOptions

    headers = _parse_headers(args.headers)
    if args.headers_file:
        headers.update(_load_headers_file(Path(args.headers_file)))

    return RunnerOptions(
        timeout_s=args.timeout,
        ready_attempts=args.ready_attempts,
        ready_interval_s=args.ready_interval,
        poll_attempts=args.poll_attempts,
        poll_interval_s=args.poll_interval,
        expected_trace_count=args.expected_traces,
        expected_span_count=args.expected_spans,
        correlation_tag=args.debug_id,
        correlation_header=args.debug_header,
        traced_service=args.traced_service,
        sampling_service=args.sampling_service,
        expected_services=tuple(args.expected_service) or ("jaeger-query",),
        expected_sampling_rate=args.expected_sampling_rate,
        parallel_verifiers=args.parallel_verifiers,
        deadline_s=args.deadline,
        headers=headers or None,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # Keep `--version` and `--help` free of the HTTP/pydantic imports.
    from jaeger_conformance.api import run
    from jaeger_conformance.log import configure_logging

    configure_logging(args.log_level)
    report = run(query_url=args.query_url, agent_url=args.agent_url, options=options_from_args(args))
    _write_output(report, fmt=args.format, out_path=args.out)
    return _exit_code(report, strict=args.strict)


if __name__ == "__main__":
    raise SystemExit(main())
