"""reqcurl models - the request model and its key/value entries."""

import copy
from dataclasses import dataclass, field
from typing import Any

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")

BODY_NONE = "none"
BODY_RAW = "raw"
BODY_FORM_DATA = "form-data"
BODY_URL_ENCODED = "url-encoded"
BODY_TYPES = (BODY_NONE, BODY_RAW, BODY_FORM_DATA, BODY_URL_ENCODED)

FIELD_TEXT = "text"
FIELD_FILE = "file"

DEFAULT_TIMEOUT = 30
DEFAULT_CONTENT_TYPE = "application/json"


@dataclass
class KeyValue:
    """A header, query param, path param or url-encoded field."""

    key: str
    value: str = ""
    enabled: bool = True


@dataclass
class FormField:
    """A multipart form field. For type 'file' the value is a file path."""

    key: str
    value: str = ""
    type: str = FIELD_TEXT
    enabled: bool = True


@dataclass
class RequestModel:
    """Structured description of one HTTP request.

    Only one of body_content, form_data and url_encoded_data is populated,
    matching body_type.
    """

    method: str = "GET"
    url: str = ""
    headers: list[KeyValue] = field(default_factory=list)
    query_params: list[KeyValue] = field(default_factory=list)
    path_params: list[KeyValue] = field(default_factory=list)
    body_type: str = BODY_NONE
    body_content: str = ""
    content_type: str = DEFAULT_CONTENT_TYPE
    form_data: list[FormField] = field(default_factory=list)
    url_encoded_data: list[KeyValue] = field(default_factory=list)
    follow_redirects: bool = True
    timeout_seconds: int = DEFAULT_TIMEOUT

    def clone(self) -> "RequestModel":
        return copy.deepcopy(self)

    def header(self, name: str) -> str | None:
        """Return the value of the first enabled header named name (case-insensitive)."""
        name = name.lower()
        for h in self.headers:
            if h.enabled and h.key.lower() == name:
                return h.value
        return None

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "url": self.url,
            "headers": [_kv_dict(h) for h in self.headers],
            "query_params": [_kv_dict(p) for p in self.query_params],
            "path_params": [_kv_dict(p) for p in self.path_params],
            "body_type": self.body_type,
            "body_content": self.body_content,
            "content_type": self.content_type,
            "form_data": [
                {"key": f.key, "value": f.value, "type": f.type, "enabled": f.enabled}
                for f in self.form_data
            ],
            "url_encoded_data": [_kv_dict(f) for f in self.url_encoded_data],
            "follow_redirects": self.follow_redirects,
            "timeout_seconds": self.timeout_seconds,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "RequestModel":
        """Build a model from plain data (as loaded from YAML or JSON).

        Missing keys fall back to defaults. Lists of entries may be given as
        a list of {key, value, enabled} mappings or as a {name: value} mapping.
        """
        if not isinstance(data, dict):
            raise ValueError("Request document must be a mapping")

        body_type = data.get("body_type") or BODY_NONE
        if body_type not in BODY_TYPES:
            raise ValueError(
                f"Unknown body_type '{body_type}'. Expected one of: {', '.join(BODY_TYPES)}"
            )

        timeout = data.get("timeout_seconds")
        return cls(
            method=str(data.get("method") or "GET").upper(),
            url=str(data.get("url") or ""),
            headers=_kv_list(data.get("headers")),
            query_params=_kv_list(data.get("query_params")),
            path_params=_kv_list(data.get("path_params")),
            body_type=body_type,
            body_content=str(data.get("body_content") or ""),
            content_type=str(data.get("content_type") or DEFAULT_CONTENT_TYPE),
            form_data=_form_list(data.get("form_data")),
            url_encoded_data=_kv_list(data.get("url_encoded_data")),
            follow_redirects=bool(data.get("follow_redirects", True)),
            timeout_seconds=int(timeout) if timeout is not None else DEFAULT_TIMEOUT,
        )


def _kv_dict(kv: KeyValue) -> dict:
    return {"key": kv.key, "value": kv.value, "enabled": kv.enabled}


def _entries(raw: Any) -> list[dict]:
    """Normalize a {name: value} mapping or a list of mappings to a list of dicts."""
    if not raw:
        return []
    if isinstance(raw, dict):
        return [{"key": k, "value": v} for k, v in raw.items()]
    if isinstance(raw, list):
        return [item for item in raw if isinstance(item, dict)]
    raise ValueError(f"Expected a list or mapping of entries, got {type(raw).__name__}")


def _kv_list(raw: Any) -> list[KeyValue]:
    return [
        KeyValue(
            key=str(item.get("key", "")),
            value="" if item.get("value") is None else str(item["value"]),
            enabled=bool(item.get("enabled", True)),
        )
        for item in _entries(raw)
    ]


def _form_list(raw: Any) -> list[FormField]:
    fields: list[FormField] = []
    for item in _entries(raw):
        field_type = item.get("type") or FIELD_TEXT
        if field_type not in (FIELD_TEXT, FIELD_FILE):
            raise ValueError(f"Unknown form field type '{field_type}'")
        fields.append(
            FormField(
                key=str(item.get("key", "")),
                value="" if item.get("value") is None else str(item["value"]),
                type=field_type,
                enabled=bool(item.get("enabled", True)),
            )
        )
    return fields
