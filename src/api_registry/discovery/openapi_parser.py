"""Reduce an arbitrary OpenAPI document to compact endpoint summaries.

Parsing is best-effort and total: any missing or wrong-shaped field degrades
to an empty result instead of raising, since the documents come from
services this process does not control.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Recognized operations, in output order
HTTP_METHODS: tuple[str, ...] = ("get", "post", "put", "patch", "delete")

_JSON_MEDIA_TYPE = "application/json"
_MAX_REF_DEPTH = 15


@dataclass
class ParameterSummary:
    name: str
    location: str | None
    required: bool = False
    type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name}
        if self.location is not None:
            result["in"] = self.location
        result["required"] = self.required
        if self.type is not None:
            result["type"] = self.type
        return result


@dataclass
class EndpointSummary:
    """One (method, path) pair in agent-friendly form."""

    method: str  # GET, POST, …
    path: str  # /v1/campaigns/{id}
    summary: str
    parameters: list[ParameterSummary] = field(default_factory=list)
    body_fields: list[str] | None = None

    @property
    def search_text(self) -> str:
        return f"{self.path} {self.summary} {' '.join(self.body_fields or [])}"

    def to_dict(self) -> dict[str, Any]:
        """Compact form: empty ``parameters``/``bodyFields`` are left out."""
        result: dict[str, Any] = {
            "method": self.method,
            "path": self.path,
            "summary": self.summary,
        }
        if self.parameters:
            result["parameters"] = [p.to_dict() for p in self.parameters]
        if self.body_fields:
            result["bodyFields"] = list(self.body_fields)
        return result


@dataclass
class SpecSummary:
    title: str | None = None
    description: str | None = None
    endpoints: list[EndpointSummary] = field(default_factory=list)


class OpenAPIParser:
    """Walks one spec document with safe lookups."""

    def __init__(self, document: Any):
        self.document = document if isinstance(document, dict) else {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def summarize(self) -> SpecSummary:
        info = _as_dict(self.document.get("info"))
        return SpecSummary(
            title=_as_str(info.get("title")),
            description=_as_str(info.get("description")),
            endpoints=self.endpoints(),
        )

    def endpoints(self) -> list[EndpointSummary]:
        endpoints: list[EndpointSummary] = []
        for path, path_item in _as_dict(self.document.get("paths")).items():
            if not isinstance(path, str) or not isinstance(path_item, dict):
                continue
            operations = _operations_by_method(path_item)
            for method in HTTP_METHODS:
                op = operations.get(method)
                if op is None:
                    continue
                endpoints.append(self._summarize_operation(method, path, op))
        return endpoints

    # ------------------------------------------------------------------
    # Per-operation
    # ------------------------------------------------------------------

    def _summarize_operation(
        self, method: str, path: str, op: dict[str, Any]
    ) -> EndpointSummary:
        summary = _as_str(op.get("summary")) or _as_str(op.get("description")) or ""
        return EndpointSummary(
            method=method.upper(),
            path=path,
            summary=summary,
            parameters=self._parameters(op.get("parameters")),
            body_fields=self._body_fields(op.get("requestBody")),
        )

    def _parameters(self, raw_params: Any) -> list[ParameterSummary]:
        if not isinstance(raw_params, list):
            return []
        params: list[ParameterSummary] = []
        for raw in raw_params:
            p = self._resolve(raw)
            if p is None:
                continue
            location = _as_str(p.get("in"))
            if location == "header":
                continue
            name = _as_str(p.get("name"))
            if name is None:
                continue
            schema = self._resolve(p.get("schema")) or {}
            params.append(
                ParameterSummary(
                    name=name,
                    location=location,
                    required=bool(p.get("required", False)),
                    type=_primitive_type(schema.get("type")),
                )
            )
        return params

    def _body_fields(self, raw_body: Any) -> list[str] | None:
        body = self._resolve(raw_body)
        if body is None:
            return None
        media = _as_dict(_as_dict(body.get("content")).get(_JSON_MEDIA_TYPE))
        schema = self._resolve(media.get("schema"))
        if schema is None:
            return None
        properties = _as_dict(schema.get("properties"))
        fields = [name for name in properties if isinstance(name, str)]
        return fields or None

    # ------------------------------------------------------------------
    # $ref resolution helpers
    # ------------------------------------------------------------------

    def _resolve(self, obj: Any, _depth: int = 0) -> dict[str, Any] | None:
        """Follow local ``#/...`` refs; None for anything unresolvable."""
        if not isinstance(obj, dict):
            return None
        ref = obj.get("$ref")
        if ref is None:
            return obj
        if _depth >= _MAX_REF_DEPTH or not isinstance(ref, str):
            return None
        return self._resolve(self._lookup_pointer(ref), _depth + 1)

    def _lookup_pointer(self, ref: str) -> Any:
        if not ref.startswith("#/"):
            return None
        node: Any = self.document
        for token in ref[2:].split("/"):
            token = token.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, dict) or token not in node:
                return None
            node = node[token]
        return node


def summarize(document: Any) -> SpecSummary:
    """Summarize *document*; never raises."""
    return OpenAPIParser(document).summarize()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _operations_by_method(path_item: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Map lowercase method → operation; vendor keys and non-dicts drop out."""
    operations: dict[str, dict[str, Any]] = {}
    for key, op in path_item.items():
        if not isinstance(key, str) or not isinstance(op, dict):
            continue
        method = key.lower()
        if method in HTTP_METHODS and method not in operations:
            operations[method] = op
    return operations


def _primitive_type(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    # OpenAPI 3.1 allows ["string", "null"]
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item != "null":
                return item
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None
