"""Tests for config file resolution, env loading, collections and secrets."""

import asyncio

import pytest
import yaml

from reqcurl import core
from reqcurl.variables import resolve_variables


def _write_config(path, data=None):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data or {"defaults": {"requests_dir": "requests"}}))


# ── resolve_config_path ─────────────────────────────────────────────────


class TestResolveConfigPath:
    def test_explicit_flag_takes_priority(self, tmp_project, global_reqcurl_dir):
        explicit = tmp_project / "custom" / "my.yaml"
        _write_config(explicit)
        _write_config(tmp_project / ".reqcurl.yaml")
        _write_config(global_reqcurl_dir / "config.yaml")

        assert core.resolve_config_path(str(explicit)) == explicit.resolve()

    def test_explicit_flag_nonexistent_returns_none(self, tmp_project, global_reqcurl_dir):
        _write_config(tmp_project / ".reqcurl.yaml")
        assert core.resolve_config_path("/nonexistent/config.yaml") is None

    def test_cwd_config_found(self, tmp_project, global_reqcurl_dir):
        _write_config(tmp_project / ".reqcurl.yaml")
        _write_config(global_reqcurl_dir / "config.yaml")
        assert core.resolve_config_path(None) == (tmp_project / ".reqcurl.yaml").resolve()

    @pytest.mark.parametrize("name", [".reqcurl.yml", "reqcurl.yaml", "reqcurl.yml"])
    def test_cwd_variants(self, tmp_project, global_reqcurl_dir, name):
        _write_config(tmp_project / name)
        assert core.resolve_config_path(None) == (tmp_project / name).resolve()

    def test_global_fallback(self, tmp_project, global_reqcurl_dir):
        _write_config(global_reqcurl_dir / "config.yaml")
        assert core.resolve_config_path(None) == (global_reqcurl_dir / "config.yaml").resolve()

    def test_nothing_found(self, tmp_project, global_reqcurl_dir):
        assert core.resolve_config_path(None) is None


# ── load_config ─────────────────────────────────────────────────────────


class TestLoadConfig:
    def test_none_gives_empty_sections(self):
        config = core.load_config(None)
        assert config == {"defaults": {}, "collections": {}, "secrets": {}, "_config_dir": None}

    def test_missing_file(self, tmp_path):
        assert core.load_config(tmp_path / "nope.yaml")["_config_dir"] is None

    def test_sections_and_config_dir(self, tmp_path):
        path = tmp_path / "conf" / "reqcurl.yaml"
        _write_config(
            path,
            {
                "defaults": {"collection": "billing"},
                "collections": {"billing": {"variables": {"a": "1"}}},
                "secrets": {"collections": {"billing": {"t": "x"}}},
            },
        )
        config = core.load_config(path)
        assert config["defaults"] == {"collection": "billing"}
        assert "billing" in config["collections"]
        assert config["secrets"]["collections"]["billing"] == {"t": "x"}
        assert config["_config_dir"] == path.parent.resolve()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert core.load_config(path)["defaults"] == {}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            core.load_config(path)


# ── env ─────────────────────────────────────────────────────────────────


class TestEnv:
    def test_env_file_overrides_os_environ(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REQCURL_TEST_TOKEN", "from-os")
        (tmp_path / ".env").write_text("REQCURL_TEST_TOKEN=from-file\nOTHER=1\n")
        env = core.load_env(".env", tmp_path)
        assert env["REQCURL_TEST_TOKEN"] == "from-file"
        assert env["OTHER"] == "1"

    def test_missing_env_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REQCURL_TEST_TOKEN", "from-os")
        env = core.load_env("missing.env", tmp_path)
        assert env["REQCURL_TEST_TOKEN"] == "from-os"

    def test_resolve_value(self):
        env = {"A": "1", "B": "2"}
        assert core.resolve_value("${A}-$B-$MISSING_REQCURL_VAR", env) == "1-2-$MISSING_REQCURL_VAR"

    def test_resolve_value_passthrough(self):
        assert core.resolve_value(None, {}) is None
        assert core.resolve_value(5, {}) == 5


# ── collections ─────────────────────────────────────────────────────────


CONFIG = {
    "defaults": {},
    "collections": {
        "billing": {
            "id": "col-7",
            "environment": "staging",
            "variables": {"base": "https://api.test", "version": 2},
        },
        "bare": None,
        "listed": {"variables": [{"key": "a", "value": "1"}, {"bad": True}]},
    },
    "secrets": {
        "collections": {"col-7": {"token": "${BILLING_TOKEN}"}},
        "environments": {"staging": {"base": "https://staging.test"}},
    },
    "_config_dir": None,
}


class TestCollections:
    def test_load_collection(self):
        c = core.load_collection("billing", CONFIG)
        assert c.id == "col-7"
        assert c.name == "billing"
        assert c.environment_id == "staging"
        assert c.variables == [
            {"key": "base", "value": "https://api.test"},
            {"key": "version", "value": "2"},
        ]

    def test_id_defaults_to_name(self):
        c = core.load_collection("bare", CONFIG)
        assert c.id == "bare"
        assert c.variables == []
        assert c.environment_id is None

    def test_list_form_variables(self):
        assert core.load_collection("listed", CONFIG).variables == [{"key": "a", "value": "1"}]

    def test_unknown_collection(self):
        assert core.load_collection("nope", CONFIG) is None

    def test_list_collections(self):
        assert [c.name for c in core.list_collections(CONFIG)] == ["billing", "bare", "listed"]


class TestConfigSecretStore:
    def test_collection_secrets_resolve_env(self):
        store = core.ConfigSecretStore(CONFIG, {"BILLING_TOKEN": "s3cret"})
        secrets = asyncio.run(store.get_secrets_by_collection("col-7"))
        assert secrets == [{"key": "token", "value": "s3cret"}]

    def test_environment_secrets(self):
        store = core.ConfigSecretStore(CONFIG, {})
        secrets = asyncio.run(store.get_secrets_by_environment("staging"))
        assert secrets == [{"key": "base", "value": "https://staging.test"}]

    def test_unknown_owner_is_empty(self):
        store = core.ConfigSecretStore(CONFIG, {})
        assert asyncio.run(store.get_secrets_by_environment("prod")) == []

    def test_malformed_section_raises(self):
        store = core.ConfigSecretStore({"secrets": {"environments": ["x"]}}, {})
        with pytest.raises(ValueError):
            asyncio.run(store.get_secrets_by_environment("staging"))

    def test_end_to_end_precedence(self):
        store = core.ConfigSecretStore(CONFIG, {"BILLING_TOKEN": "s3cret"})
        collection = core.load_collection("billing", CONFIG)
        text = asyncio.run(
            resolve_variables("{{base}}/v{{version}}?t={{token}}", collection, store)
        )
        assert text == "https://staging.test/v2?t=s3cret"

    def test_malformed_secrets_fall_back_to_inline(self):
        config = dict(CONFIG, secrets={"environments": "broken"})
        store = core.ConfigSecretStore(config, {})
        collection = core.load_collection("billing", config)
        text = asyncio.run(resolve_variables("{{base}}", collection, store))
        assert text == "https://api.test"
