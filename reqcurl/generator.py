"""reqcurl generator - render a RequestModel as a curl command."""

import re
from urllib.parse import quote, urlsplit, urlunsplit

from reqcurl.models import (
    BODY_FORM_DATA,
    BODY_NONE,
    BODY_RAW,
    BODY_URL_ENCODED,
    DEFAULT_TIMEOUT,
    FIELD_FILE,
    RequestModel,
)

FORM_URLENCODED = "application/x-www-form-urlencoded"

_SAFE_ARG_RE = re.compile(r"^[A-Za-z0-9_@%+=:,./-]+$")
_DOUBLE_QUOTE_SPECIAL_RE = re.compile(r'([\\"$`])')
_METHODS_WITHOUT_BODY = ("GET", "HEAD")


def shell_quote(arg) -> str:
    """Quote an argument for a POSIX shell.

    Plain words are left bare. Anything else is double-quoted with the four
    characters that stay special inside double quotes backslash-escaped,
    which the reqcurl tokenizer reads back the same way the shell does.
    """
    s = str(arg)
    if _SAFE_ARG_RE.match(s):
        return s
    return '"' + _DOUBLE_QUOTE_SPECIAL_RE.sub(r"\\\1", s) + '"'


def _encode(value: str) -> str:
    # Same unreserved set as JavaScript's encodeURIComponent
    return quote(value, safe="!~*'()")


def build_url(model: RequestModel) -> str:
    """Return the model URL with path params substituted and query params applied.

    When the model carries enabled query params they replace the URL's own
    query string, so a URL that was parsed into params is not duplicated.
    """
    url = model.url or ""

    for param in model.path_params:
        if param.enabled and param.key:
            replacement = _encode(param.value or "")
            url = url.replace("{" + param.key + "}", replacement)
            url = url.replace(":" + param.key, replacement)

    enabled = [p for p in model.query_params if p.enabled and p.key]
    if model.query_params:
        query = "&".join(f"{_encode(p.key)}={_encode(p.value or '')}" for p in enabled)
        parts = urlsplit(url)
        if parts.scheme and parts.netloc:
            url = urlunsplit(parts._replace(query=query))
        else:
            # The query goes before any #fragment
            rest, hash_sep, fragment = url.partition("#")
            rest = rest.split("?", 1)[0]
            url = rest + ("?" + query if query else "") + hash_sep + fragment

    return url


def _flag_pairs(model: RequestModel) -> list[tuple[str, str]]:
    """Ordered (flag, raw value) pairs shared by both output layouts."""
    pairs: list[tuple[str, str]] = []

    for h in model.headers:
        if h.enabled and h.key:
            pairs.append(("-H", f"{h.key}: {h.value or ''}"))

    if model.body_type != BODY_NONE and model.method not in _METHODS_WITHOUT_BODY:
        has_content_type = model.header("content-type") is not None

        if model.body_type == BODY_RAW and model.body_content:
            if not has_content_type and model.content_type:
                pairs.append(("-H", f"Content-Type: {model.content_type}"))
            pairs.append(("-d", model.body_content))

        elif model.body_type == BODY_FORM_DATA:
            for f in model.form_data:
                if not (f.enabled and f.key):
                    continue
                if f.type == FIELD_FILE:
                    pairs.append(("-F", f"{f.key}=@{f.value or 'filename'}"))
                else:
                    pairs.append(("-F", f"{f.key}={f.value or ''}"))

        elif model.body_type == BODY_URL_ENCODED:
            fields = [f for f in model.url_encoded_data if f.enabled and f.key]
            if fields:
                data = "&".join(f"{_encode(f.key)}={_encode(f.value or '')}" for f in fields)
                if not has_content_type:
                    pairs.append(("-H", f"Content-Type: {FORM_URLENCODED}"))
                pairs.append(("-d", data))

    if model.follow_redirects is False:
        pairs.append(("--max-redirs", "0"))
    if model.timeout_seconds != DEFAULT_TIMEOUT:
        pairs.append(("--max-time", str(model.timeout_seconds)))

    return pairs


def _render(flag: str, value: str) -> str:
    return f"{flag} {shell_quote(value)}"


def generate_curl(model: RequestModel, verbose: bool = True) -> str:
    """Render the model as a single-line curl command."""
    parts = ["curl"]
    if model.method and model.method != "GET":
        parts.append(_render("-X", model.method))
    parts.append(shell_quote(build_url(model)))
    parts.extend(_render(flag, value) for flag, value in _flag_pairs(model))
    if verbose:
        parts.append("-v")
    return " ".join(parts)


def generate_formatted_curl(model: RequestModel, verbose: bool = False) -> str:
    """Render the model as a multi-line curl command, one flag per line, URL last."""
    parts = ["curl"]
    if model.method and model.method != "GET":
        parts.append("  " + _render("-X", model.method))
    parts.extend("  " + _render(flag, value) for flag, value in _flag_pairs(model))
    if verbose:
        parts.append("  -v")
    parts.append("  " + shell_quote(build_url(model)))
    return " \\\n".join(parts)
