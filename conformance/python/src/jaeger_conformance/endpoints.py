from __future__ import annotations

import urllib.parse


def _join(base_url: str, path: str, params: dict[str, str] | None = None) -> str:
    url = base_url.rstrip("/") + path
    if params:
        url += "?" + urllib.parse.urlencode(params)
    return url


def health_url(query_url: str) -> str:
    return _join(query_url, "/")


def favicon_url(query_url: str) -> str:
    return _join(query_url, "/favicon.ico")


def services_url(query_url: str) -> str:
    return _join(query_url, "/api/services")


def trace_search_url(query_url: str, *, service: str, tag_key: str, tag_value: str) -> str:
    return _join(query_url, "/api/traces", {"service": service, "tag": f"{tag_key}:{tag_value}"})


def sampling_url(agent_url: str, *, service: str) -> str:
    return _join(agent_url, "/sampling", {"service": service})


def services_v3_url(query_url: str) -> str:
    return _join(query_url, "/api/v3/services")
