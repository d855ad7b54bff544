from __future__ import annotations

from jaeger_conformance import DEFAULT_AGENT_URL, DEFAULT_QUERY_URL
from jaeger_conformance.http import HttpClient
from jaeger_conformance.report import ConformanceReport
from jaeger_conformance.runner import RunnerOptions, ScenarioRunner


def run(
    *,
    query_url: str = DEFAULT_QUERY_URL,
    agent_url: str = DEFAULT_AGENT_URL,
    options: RunnerOptions | None = None,
    client: HttpClient | None = None,
) -> ConformanceReport:
    """
    Run the all-in-one scenario programmatically.

    Pass a prebuilt `client` to reuse a transport (or a fake one in tests); otherwise one is
    built from `options.timeout_s` and `options.headers`.
    """

    runner = ScenarioRunner(query_url=query_url, agent_url=agent_url, options=options, client=client)
    return runner.run()
