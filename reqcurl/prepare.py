"""reqcurl prepare - build the exact HTTP request a model describes, without sending it."""

import logging
import mimetypes
from pathlib import Path
from typing import Any

import requests

from reqcurl.generator import build_url
from reqcurl.models import (
    BODY_FORM_DATA,
    BODY_RAW,
    BODY_URL_ENCODED,
    FIELD_FILE,
    RequestModel,
)

logger = logging.getLogger(__name__)


def prepare_request(model: RequestModel) -> requests.PreparedRequest:
    """Turn a model into a requests.PreparedRequest.

    - URL gets path and query params applied (same as the generated curl)
    - Raw bodies are UTF-8 encoded; Content-Type falls back to model.content_type
    - Url-encoded and form-data bodies are encoded by requests
    - File fields are read from disk; a missing file is sent empty
    - GET and HEAD never carry a body
    """
    headers: dict[str, str] = {}
    for h in model.headers:
        if h.enabled and h.key:
            headers[h.key] = h.value

    kwargs: dict[str, Any] = {
        "method": model.method.upper(),
        "url": build_url(model),
        "headers": headers,
    }

    if model.method.upper() in ("GET", "HEAD"):
        pass  # no body, same as the generated curl command

    elif model.body_type == BODY_RAW and model.body_content:
        if model.header("content-type") is None and model.content_type:
            headers["Content-Type"] = model.content_type
        kwargs["data"] = model.body_content.encode("utf-8")

    elif model.body_type == BODY_URL_ENCODED:
        kwargs["data"] = [
            (f.key, f.value) for f in model.url_encoded_data if f.enabled and f.key
        ]

    elif model.body_type == BODY_FORM_DATA:
        # Let requests set the multipart boundary
        for name in list(headers):
            if name.lower() == "content-type":
                del headers[name]
        # Text fields go in as (None, value) so the order of all fields is kept
        parts: list[tuple[str, tuple]] = []
        for f in model.form_data:
            if not (f.enabled and f.key):
                continue
            if f.type == FIELD_FILE:
                parts.append((f.key, _read_upload(f.value)))
            else:
                parts.append((f.key, (None, f.value)))
        if parts:
            kwargs["files"] = parts

    return requests.Request(**kwargs).prepare()


def _read_upload(path_str: str) -> tuple[str, bytes, str]:
    path = Path(path_str)
    mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    try:
        content = path.read_bytes()
    except OSError as e:
        logger.warning("Form file %s could not be read, sending it empty: %s", path, e)
        content = b""
    return (path.name or "filename", content, mime)


def describe_prepared(prepared: requests.PreparedRequest, max_body: int = 2000) -> str:
    """Render a prepared request as HTTP-like text."""
    lines = [f"{prepared.method} {prepared.url}"]
    for k, v in prepared.headers.items():
        lines.append(f"{k}: {v}")
    body = prepared.body
    if body:
        if isinstance(body, bytes):
            text = body.decode("utf-8", errors="replace")
        else:
            text = str(body)
        if len(text) > max_body:
            text = text[:max_body] + f"... ({len(text) - max_body} more chars)"
        lines.append("")
        lines.append(text)
    return "\n".join(lines)
