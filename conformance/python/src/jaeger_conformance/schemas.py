from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from typing import Any, Iterator

from jsonschema import Draft202012Validator

TRACE_QUERY_RESPONSE = "trace_query_response.schema.json"
SERVICES_RESPONSE = "services_response.schema.json"
SAMPLING_STRATEGY_RESPONSE = "sampling_strategy_response.schema.json"
GET_SERVICES_RESPONSE = "get_services_response.schema.json"


def iter_schema_files() -> Iterator[tuple[str, str]]:
    root = resources.files("jaeger_conformance") / "schemas"
    for entry in sorted(root.iterdir(), key=lambda e: e.name):
        if entry.name.endswith(".schema.json"):
            yield entry.name, entry.read_text(encoding="utf-8")


def _json_path(err: object) -> str:
    path = getattr(err, "absolute_path", None)
    if not path:
        return "$"
    out = "$"
    for part in path:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}"
    return out


@dataclass(frozen=True)
class SchemaRegistry:
    store: dict[str, dict[str, Any]]

    @classmethod
    def load(cls) -> "SchemaRegistry":
        store = {name: json.loads(content) for name, content in iter_schema_files()}
        for schema in store.values():
            Draft202012Validator.check_schema(schema)
        return cls(store=store)

    def load_schema(self, name: str) -> dict[str, Any]:
        schema = self.store.get(name)
        if schema is None:
            raise KeyError(f"Schema not found: {name}")
        return schema

    def validate(self, instance: Any, *, schema: str) -> list[str]:
        validator = Draft202012Validator(self.load_schema(schema))
        errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path])
        return [f"{_json_path(e)}: {e.message}" for e in errors]
