"""reqcurl variables - layered variable scopes and {{name}} substitution.

A scope is an ordered list of named layers. Layers are merged lowest
precedence first, so a key defined by a later layer wins:

  1. collection            inline collection variables
  2. collection_secrets    secrets stored for the collection
  3. environment_secrets   secrets stored for the collection's environment

Loading a layer may fail (missing store, broken file, ...). A failed layer
is logged and treated as empty; resolution itself never raises.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from reqcurl.models import FIELD_TEXT, KeyValue, RequestModel

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{([^}]*)\}\}")

LAYER_COLLECTION = "collection"
LAYER_COLLECTION_SECRETS = "collection_secrets"
LAYER_ENVIRONMENT_SECRETS = "environment_secrets"
LAYER_ORDER = (LAYER_COLLECTION, LAYER_COLLECTION_SECRETS, LAYER_ENVIRONMENT_SECRETS)


@dataclass
class Collection:
    """The collection a request belongs to, as seen by the resolver."""

    id: str | None = None
    name: str = ""
    variables: list[dict] = field(default_factory=list)
    environment_id: str | None = None


class SecretStore(ABC):
    """Storage collaborator that serves persisted secrets.

    Both accessors return a list of {"key": ..., "value": ...} mappings.
    """

    @abstractmethod
    async def get_secrets_by_collection(self, collection_id: str) -> list[dict]: ...

    @abstractmethod
    async def get_secrets_by_environment(self, environment_id: str) -> list[dict]: ...


@dataclass
class VariableLayer:
    name: str
    values: dict[str, str] = field(default_factory=dict)


@dataclass
class VariableScope:
    """Ordered variable layers, lowest precedence first."""

    layers: list[VariableLayer] = field(default_factory=list)

    def merged(self) -> dict[str, str]:
        variables: dict[str, str] = {}
        for layer in self.layers:
            variables.update(layer.values)
        return variables

    def layer(self, name: str) -> VariableLayer | None:
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None

    def source_of(self, key: str) -> str | None:
        """Name of the layer whose value for key wins, or None if undefined."""
        for layer in reversed(self.layers):
            if key in layer.values:
                return layer.name
        return None


# ── Substitution ─────────────────────────────────────────────────────────


def resolve_text(text: Any, variables: Mapping[str, str]) -> Any:
    """Replace {{name}} placeholders with values from variables.

    Unknown placeholders are left as written. Non-string input is returned
    unchanged.
    """
    if not text or not isinstance(text, str):
        return text

    def _replace(m: re.Match) -> str:
        name = m.group(1)
        if name in variables:
            return str(variables[name])
        return m.group(0)

    return PLACEHOLDER_RE.sub(_replace, text)


def find_placeholders(text: str) -> list[str]:
    """Return placeholder names in text, in order, without duplicates."""
    if not text or not isinstance(text, str):
        return []
    return list(dict.fromkeys(PLACEHOLDER_RE.findall(text)))


def _resolve_pairs(items: list[KeyValue], variables: Mapping[str, str]) -> None:
    for item in items:
        item.key = resolve_text(item.key, variables)
        item.value = resolve_text(item.value, variables)


def resolve_request_model(model: RequestModel, variables: Mapping[str, str]) -> RequestModel:
    """Return a resolved copy of model. The input model is not modified.

    File form fields keep their value (a path) unresolved.
    """
    resolved = model.clone()
    resolved.url = resolve_text(resolved.url, variables)
    _resolve_pairs(resolved.headers, variables)
    _resolve_pairs(resolved.query_params, variables)
    _resolve_pairs(resolved.path_params, variables)
    resolved.body_content = resolve_text(resolved.body_content, variables)
    for f in resolved.form_data:
        f.key = resolve_text(f.key, variables)
        if f.type == FIELD_TEXT:
            f.value = resolve_text(f.value, variables)
    _resolve_pairs(resolved.url_encoded_data, variables)
    return resolved


def unresolved_placeholders(model: RequestModel) -> list[str]:
    """Placeholder names still present anywhere in the model."""
    texts = [model.url, model.body_content]
    for items in (model.headers, model.query_params, model.path_params, model.url_encoded_data):
        texts.extend(t for item in items for t in (item.key, item.value))
    for f in model.form_data:
        texts.append(f.key)
        if f.type == FIELD_TEXT:
            texts.append(f.value)
    names: list[str] = []
    for text in texts:
        names.extend(find_placeholders(text))
    return list(dict.fromkeys(names))


# ── Scope loading ────────────────────────────────────────────────────────


def _to_mapping(entries: Iterable[dict] | Mapping | None) -> dict[str, str]:
    """Turn [{key, value}, ...] (or a plain mapping) into {key: value}."""
    if not entries:
        return {}
    if isinstance(entries, Mapping):
        return {str(k): "" if v is None else str(v) for k, v in entries.items()}
    values: dict[str, str] = {}
    for entry in entries:
        key = entry["key"]
        value = entry.get("value")
        values[str(key)] = "" if value is None else str(value)
    return values


async def _inline_variables(collection: Collection) -> list[dict]:
    return collection.variables


async def _load_layer(name: str, fetch) -> VariableLayer:
    if fetch is None:
        return VariableLayer(name)
    try:
        return VariableLayer(name, _to_mapping(await fetch()))
    except Exception as exc:
        logger.warning("Failed to load %s variables: %s", name, exc)
        return VariableLayer(name)


async def load_scope(collection: Collection | None, store: SecretStore | None) -> VariableScope:
    """Load the collection, collection-secret and environment-secret layers.

    The three lookups run concurrently; the result is always in precedence
    order regardless of which finishes first.
    """
    if collection is None:
        return VariableScope([VariableLayer(name) for name in LAYER_ORDER])

    collection_secrets = None
    environment_secrets = None
    if store is not None and collection.id:
        collection_secrets = lambda: store.get_secrets_by_collection(collection.id)
    if store is not None and collection.environment_id:
        environment_secrets = lambda: store.get_secrets_by_environment(collection.environment_id)

    layers = await asyncio.gather(
        _load_layer(LAYER_COLLECTION, lambda: _inline_variables(collection)),
        _load_layer(LAYER_COLLECTION_SECRETS, collection_secrets),
        _load_layer(LAYER_ENVIRONMENT_SECRETS, environment_secrets),
    )
    scope = VariableScope(list(layers))
    logger.debug(
        "Loaded variable scope for collection %r: %s",
        collection.name or collection.id,
        ", ".join(f"{layer.name}={len(layer.values)}" for layer in scope.layers),
    )
    return scope


async def resolve_variables(
    text: Any,
    collection: Collection | None,
    store: SecretStore | None,
) -> Any:
    """Load the collection's scope and resolve placeholders in text."""
    if not text or not isinstance(text, str):
        return text
    scope = await load_scope(collection, store)
    return resolve_text(text, scope.merged())


async def resolve_request_variables(
    model: RequestModel | None,
    collection: Collection | None,
    store: SecretStore | None,
) -> RequestModel | None:
    """Load the collection's scope and return a resolved copy of model."""
    if model is None:
        return None
    scope = await load_scope(collection, store)
    return resolve_request_model(model, scope.merged())
