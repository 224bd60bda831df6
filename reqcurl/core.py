"""reqcurl core - config loading, secret storage, saved requests."""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from reqcurl.models import RequestModel
from reqcurl.variables import Collection, SecretStore

logger = logging.getLogger(__name__)

GLOBAL_DIR = Path.home() / ".reqcurl"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"

CWD_CONFIG_CANDIDATES = [
    ".reqcurl.yaml",
    ".reqcurl.yml",
    "reqcurl.yaml",
    "reqcurl.yml",
]


def resolve_path(
    candidates: list[Path],
    default: Path | None = None,
) -> Path | None:
    """Return the first existing path from candidates.

    Works for both files and directories - just checks .exists().
    If none exist, returns default (which the caller can create).
    """
    for p in candidates:
        if p.exists():
            return p.resolve()
    return default


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit -c flag (hard - no fallthrough if missing)
      2. .reqcurl.yaml (variants) in CWD
      3. ~/.reqcurl/config.yaml
    """
    if config_file:
        return resolve_path([Path(config_file)])
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_config(config_path: str | Path | None) -> dict:
    """Load YAML config file. Returns empty sections if not found.

    Stores '_config_dir' in the returned dict so resource directories and
    the env file can be resolved relative to the config file.
    """
    empty = {"defaults": {}, "collections": {}, "secrets": {}, "_config_dir": None}
    if config_path is None:
        return empty
    path = Path(config_path)
    if not path.exists():
        return empty
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return {
        "defaults": data.get("defaults") or {},
        "collections": data.get("collections") or {},
        "secrets": data.get("secrets") or {},
        "_config_dir": path.resolve().parent,
    }


def load_env(env_file: str | None, base_dir: str | Path | None = None) -> dict[str, str]:
    """Load .env file and merge with os.environ.

    Returns combined dict with .env values taking precedence over os.environ
    for explicit vars, but os.environ available as fallback.
    """
    env = dict(os.environ)
    if env_file:
        dotenv_path = Path(base_dir or ".") / env_file
        if dotenv_path.exists():
            dotenv_vars = dotenv_values(str(dotenv_path))
            env.update({k: v for k, v in dotenv_vars.items() if v is not None})
        else:
            logger.debug("env file %s not found", dotenv_path)
    return env


def resolve_value(value: Any, env: dict[str, str]) -> Any:
    """Resolve $VAR and ${VAR} references in a string value.

    $VAR or ${VAR} -> look up in env dict, then os.environ.
    Returns the resolved value or original if no match.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value

    def _replace(m: re.Match) -> str:
        var_name = m.group(1) or m.group(2)
        return env.get(var_name, os.environ.get(var_name, m.group(0)))

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", _replace, value)


# ── Collections and secrets ──────────────────────────────────────────────


def _variable_list(raw: Any) -> list[dict]:
    """Accept {name: value} or [{key, value}] and return [{key, value}]."""
    if not raw:
        return []
    if isinstance(raw, dict):
        return [{"key": str(k), "value": "" if v is None else str(v)} for k, v in raw.items()]
    if isinstance(raw, list):
        return [item for item in raw if isinstance(item, dict) and "key" in item]
    raise ValueError(f"Expected a list or mapping of variables, got {type(raw).__name__}")


def load_collection(name: str, config: dict) -> Collection | None:
    """Build a Collection from the config's collections section."""
    collections = config.get("collections") or {}
    if name not in collections:
        return None
    entry = collections[name] or {}
    return Collection(
        id=str(entry.get("id") or name),
        name=name,
        variables=_variable_list(entry.get("variables")),
        environment_id=entry.get("environment"),
    )


def list_collections(config: dict) -> list[Collection]:
    return [load_collection(name, config) for name in (config.get("collections") or {})]


class ConfigSecretStore(SecretStore):
    """Secrets kept in the config's secrets section.

      secrets:
        collections:
          <collection id>: {NAME: value, ...}
        environments:
          <environment id>: {NAME: value, ...}

    Values may reference ${VAR} / $VAR, resolved against env on read.
    """

    def __init__(self, config: dict, env: dict[str, str] | None = None):
        self._secrets = config.get("secrets") or {}
        self._env = env if env is not None else dict(os.environ)

    def _read(self, section: str, owner_id: str) -> list[dict]:
        owners = self._secrets.get(section) or {}
        if not isinstance(owners, dict):
            raise ValueError(f"secrets.{section} must be a mapping")
        return [
            {"key": item["key"], "value": resolve_value(item.get("value"), self._env)}
            for item in _variable_list(owners.get(owner_id))
        ]

    async def get_secrets_by_collection(self, collection_id: str) -> list[dict]:
        return self._read("collections", collection_id)

    async def get_secrets_by_environment(self, environment_id: str) -> list[dict]:
        return self._read("environments", environment_id)


# ── Saved requests ───────────────────────────────────────────────────────


def _resource_candidates(
    resource_name: str,
    cli_override: str | None,
    config: dict,
) -> list[Path]:
    """Build the ordered candidate list for a named resource directory."""
    # CLI override - absolute or relative to CWD
    if cli_override:
        p = Path(cli_override)
        if not p.is_absolute():
            p = Path.cwd() / p
        return [p]  # hard override - no fallthrough

    candidates: list[Path] = []

    # Config value - relative to config file's directory
    defaults = config.get("defaults", {})
    config_value = defaults.get(f"{resource_name}_dir")
    config_dir = config.get("_config_dir")
    if config_value:
        p = Path(config_value)
        if not p.is_absolute() and config_dir:
            p = Path(config_dir) / p
        candidates.append(p)

    candidates.append(Path(resource_name))
    candidates.append(GLOBAL_DIR / resource_name)

    return candidates


def resolve_resource_dir(
    resource_name: str,
    cli_override: str | None,
    config: dict,
    default: Path | None = None,
) -> Path | None:
    """Find a resource directory by name.

    Resolution order:
      1. cli_override (absolute or relative to CWD; hard - no fallthrough)
      2. {resource_name}_dir from config defaults (relative to config file)
      3. ./{resource_name}/ in CWD
      4. ~/.reqcurl/{resource_name}/

    If none found, returns default (caller can create it).
    """
    candidates = _resource_candidates(resource_name, cli_override, config)
    return resolve_path(candidates, default=default)


def resolve_requests_dir(
    cli_requests_dir: str | None,
    config: dict,
    default: Path | None = None,
) -> Path | None:
    return resolve_resource_dir("requests", cli_requests_dir, config, default=default)


def request_search_paths(
    name: str,
    config: dict,
    requests_dir_override: str | None = None,
) -> list[str]:
    """Return human-readable list of paths that were checked for a saved request."""
    paths = [name, f"{name}.yaml"]
    for c in _resource_candidates("requests", requests_dir_override, config):
        paths.append(str(c / f"{name}.yaml"))
    return paths


def load_request(
    name_or_path: str,
    config: dict,
    requests_dir_override: str | None = None,
) -> RequestModel | None:
    """Load a saved request model.

    Resolution order:
      1. Exact file path, or the path with .yaml/.yml/.json appended
      2. Resolved requests directory + name.yaml

    Raises ValueError for a file that exists but is not a valid request.
    """
    p = Path(name_or_path)
    if p.is_file():
        return _read_request_file(p)
    for ext in (".yaml", ".yml", ".json"):
        candidate = Path(name_or_path + ext)
        if candidate.is_file():
            return _read_request_file(candidate)

    rdir = resolve_requests_dir(requests_dir_override, config)
    if rdir and rdir.is_dir():
        for ext in (".yaml", ".yml", ".json"):
            candidate = rdir / (name_or_path + ext)
            if candidate.is_file():
                return _read_request_file(candidate)

    return None


def _read_request_file(path: Path) -> RequestModel:
    # JSON is a subset of YAML, so safe_load reads both
    with open(path) as f:
        data = yaml.safe_load(f)
    try:
        return RequestModel.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{path}: {e}") from e


def save_request(name: str, model: RequestModel, requests_dir: Path) -> Path:
    """Write a request model to requests_dir/name.yaml, creating the directory."""
    requests_dir.mkdir(parents=True, exist_ok=True)
    path = requests_dir / f"{name}.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(model.to_dict(), f, sort_keys=False, allow_unicode=True)
    return path


def list_requests(
    config: dict,
    requests_dir_override: str | None = None,
) -> tuple[Path | None, list[dict]]:
    """List saved requests from the resolved requests directory.

    Returns (resolved_dir, [{name, method, url}]). Unreadable files are
    listed with method '?'.
    """
    rdir = resolve_requests_dir(requests_dir_override, config)
    if not rdir or not rdir.is_dir():
        return (rdir, [])

    entries: list[dict] = []
    for f in sorted(rdir.iterdir()):
        if f.suffix not in (".yaml", ".yml", ".json") or not f.is_file():
            continue
        try:
            model = _read_request_file(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("Skipping unreadable request file %s: %s", f, e)
            entries.append({"name": f.stem, "method": "?", "url": ""})
            continue
        entries.append({"name": f.stem, "method": model.method, "url": model.url})
    return (rdir, entries)
