from __future__ import annotations

__all__ = ["__version__", "DEBUG_ID_HEADER", "DEFAULT_QUERY_URL", "DEFAULT_AGENT_URL"]

__version__ = "0.1.0"

DEBUG_ID_HEADER = "jaeger-debug-id"
DEFAULT_QUERY_URL = "http://localhost:16686"
DEFAULT_AGENT_URL = "http://localhost:5778"
