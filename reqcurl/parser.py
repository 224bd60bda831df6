"""reqcurl parser - tokenize, validate and parse curl commands."""

import logging
import re
from collections.abc import Callable, Sequence
from typing import NamedTuple
from urllib.parse import parse_qsl, unquote, urlsplit

from reqcurl.exceptions import InvalidCommandError, MissingValueError, NoUrlError
from reqcurl.models import (
    BODY_FORM_DATA,
    BODY_RAW,
    BODY_URL_ENCODED,
    FIELD_FILE,
    FIELD_TEXT,
    FormField,
    KeyValue,
    RequestModel,
)

logger = logging.getLogger(__name__)

COMMAND_KEYWORD = "curl"
MIN_COMMAND_LENGTH = 10

_CONTINUATION_RE = re.compile(r"\\\s*\n\s*")
_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


# ── Tokenizer ────────────────────────────────────────────────────────────


def normalize_command(command: str) -> str:
    """Trim, join backslash-newline continuations and collapse whitespace."""
    cmd = command.strip()
    cmd = _CONTINUATION_RE.sub(" ", cmd)
    return _WHITESPACE_RE.sub(" ", cmd)


def tokenize(command: str) -> list[str]:
    """Split a curl command into argument tokens.

    Single and double quotes group characters and are dropped. A backslash
    escapes the next character everywhere, including inside quotes, so an
    escaped quote never opens or closes a quoted span. Unterminated quotes
    are not an error: whatever was collected becomes the last token.
    """
    tokens: list[str] = []
    current: list[str] = []
    quote_char = ""
    escaped = False

    for char in normalize_command(command):
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif not quote_char and char in ("'", '"'):
            quote_char = char
        elif quote_char and char == quote_char:
            quote_char = ""
        elif not quote_char and char == " ":
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(char)

    if current:
        tokens.append("".join(current))
    return tokens


# ── Validator ────────────────────────────────────────────────────────────


def validate_curl(command) -> list[str]:
    """Cheap structural checks on a raw command. Returns all violations found.

    An empty list means the command looks parseable; it does not guarantee
    that parse_curl will succeed.
    """
    if not isinstance(command, str):
        return ["Curl command is required"]

    errors: list[str] = []
    trimmed = command.strip()
    if not trimmed:
        errors.append("Curl command cannot be empty")
    if not trimmed.lower().startswith(COMMAND_KEYWORD):
        errors.append(f'Command must start with "{COMMAND_KEYWORD}"')
    if len(trimmed) < MIN_COMMAND_LENGTH:
        errors.append("Curl command appears to be too short")
    return errors


# ── Parser ───────────────────────────────────────────────────────────────


class _Flag(NamedTuple):
    takes_value: bool
    apply: Callable[[RequestModel, str | None], None]


def _set_method(model: RequestModel, value: str | None) -> None:
    model.method = value.upper()


def _add_header(model: RequestModel, value: str | None) -> None:
    key, sep, rest = value.partition(":")
    key = key.strip()
    if not sep or not key:
        logger.debug("Dropping header without key or colon: %r", value)
        return
    model.headers.append(KeyValue(key=key, value=rest.strip()))


def _set_data(model: RequestModel, value: str | None) -> None:
    # Heuristic: a body containing both '=' and '&' is taken as url-encoded.
    # A raw body that happens to contain both characters is misclassified.
    model.form_data = []
    if "=" in value and "&" in value:
        model.body_type = BODY_URL_ENCODED
        model.body_content = ""
        model.url_encoded_data = parse_url_encoded(value)
    else:
        model.body_type = BODY_RAW
        model.body_content = value
        model.url_encoded_data = []


def _add_form_field(model: RequestModel, value: str | None) -> None:
    key, _, field_value = value.partition("=")
    if not key:
        logger.debug("Dropping form field without key: %r", value)
        return
    if field_value.startswith("@"):
        form_field = FormField(key=key, value=field_value[1:], type=FIELD_FILE)
    else:
        form_field = FormField(key=key, value=field_value, type=FIELD_TEXT)
    model.body_type = BODY_FORM_DATA
    model.body_content = ""
    model.url_encoded_data = []
    model.form_data.append(form_field)


def _set_max_time(model: RequestModel, value: str | None) -> None:
    seconds = _parse_int(value)
    if seconds is not None:
        model.timeout_seconds = seconds


def _set_max_redirs(model: RequestModel, value: str | None) -> None:
    redirects = _parse_int(value)
    model.follow_redirects = redirects is not None and redirects > 0


def _follow_redirects(model: RequestModel, value: str | None) -> None:
    model.follow_redirects = True


def _ignore(model: RequestModel, value: str | None) -> None:
    pass


FLAG_TABLE: dict[str, _Flag] = {
    "-X": _Flag(True, _set_method),
    "--request": _Flag(True, _set_method),
    "-H": _Flag(True, _add_header),
    "--header": _Flag(True, _add_header),
    "-d": _Flag(True, _set_data),
    "--data": _Flag(True, _set_data),
    "--data-raw": _Flag(True, _set_data),
    "-F": _Flag(True, _add_form_field),
    "--form": _Flag(True, _add_form_field),
    "--max-time": _Flag(True, _set_max_time),
    "--max-redirs": _Flag(True, _set_max_redirs),
    "-L": _Flag(False, _follow_redirects),
    "--location": _Flag(False, _follow_redirects),
    "-v": _Flag(False, _ignore),
    "--verbose": _Flag(False, _ignore),
    "-s": _Flag(False, _ignore),
    "--silent": _Flag(False, _ignore),
    "-S": _Flag(False, _ignore),
    "--show-error": _Flag(False, _ignore),
}


def parse_tokens(tokens: Sequence[str]) -> RequestModel:
    """Build a RequestModel from curl tokens (the first token is the command name).

    Raises MissingValueError when a value-taking flag is the last token and
    NoUrlError when no bare token was found.
    """
    model = RequestModel()
    url_seen = False
    args = list(tokens[1:])

    i = 0
    while i < len(args):
        tok = args[i]

        if not tok.startswith("-"):
            if not url_seen:
                model.url = tok
                model.query_params = parse_query_params(tok)
                url_seen = True
            i += 1
            continue

        flag = FLAG_TABLE.get(tok)
        if flag is None:
            # Unknown flags: a long flag swallows a following non-flag token
            if tok.startswith("--") and i + 1 < len(args) and not args[i + 1].startswith("-"):
                logger.debug("Skipping unknown flag %s %r", tok, args[i + 1])
                i += 2
            else:
                logger.debug("Skipping unknown flag %s", tok)
                i += 1
            continue

        if flag.takes_value:
            if i + 1 >= len(args):
                raise MissingValueError(tok)
            flag.apply(model, args[i + 1])
            i += 2
        else:
            flag.apply(model, None)
            i += 1

    if not model.url:
        raise NoUrlError()

    if model.body_type == BODY_RAW and model.body_content:
        model.content_type = infer_content_type(model)

    return model


def parse_curl(command) -> RequestModel:
    """Tokenize and parse a curl command string.

    Raises InvalidCommandError if the input is not text or does not start
    with 'curl', otherwise the errors of parse_tokens.
    """
    if not isinstance(command, str):
        raise InvalidCommandError("Invalid curl command")
    if not normalize_command(command).lower().startswith(COMMAND_KEYWORD):
        raise InvalidCommandError(f'Command must start with "{COMMAND_KEYWORD}"')
    return parse_tokens(tokenize(command))


def infer_content_type(model: RequestModel) -> str:
    """Content type for a raw body: explicit header first, then a guess from the body."""
    for h in model.headers:
        if h.key.lower() == "content-type":
            return h.value
    body = model.body_content.strip()
    if body.startswith(("{", "[")):
        return "application/json"
    if body.startswith("<"):
        return "application/xml"
    return model.content_type


# ── URL and body helpers ─────────────────────────────────────────────────


def parse_query_params(url: str) -> list[KeyValue]:
    """Extract query params from a URL in order of appearance."""
    parts = urlsplit(url)
    if parts.scheme and parts.netloc:
        return [
            KeyValue(key=k, value=v)
            for k, v in parse_qsl(parts.query, keep_blank_values=True)
        ]

    # Not an absolute URL: pull the query string out by hand
    _, sep, query = url.partition("?")
    if not sep:
        return []
    query = query.partition("#")[0]
    return _split_pairs(query)


def parse_url_encoded(data: str) -> list[KeyValue]:
    """Parse 'a=1&b=2' into ordered fields. Fields with no key are dropped."""
    return _split_pairs(data)


def _split_pairs(text: str) -> list[KeyValue]:
    pairs: list[KeyValue] = []
    for pair in text.split("&"):
        key, _, value = pair.partition("=")
        if not key:
            continue
        pairs.append(KeyValue(key=unquote(key), value=unquote(value)))
    return pairs


def _parse_int(value: str) -> int | None:
    m = _LEADING_INT_RE.match(value)
    return int(m.group(1)) if m else None
