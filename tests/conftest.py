"""Shared fixtures for reqcurl tests."""

import os

import pytest
from click.testing import CliRunner

from reqcurl import core
from reqcurl.models import FormField, KeyValue, RequestModel
from reqcurl.variables import SecretStore


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tmp_project(tmp_path):
    """Create a temporary project directory and cd into it."""
    original = os.getcwd()
    os.chdir(tmp_path)
    yield tmp_path
    os.chdir(original)


@pytest.fixture
def global_reqcurl_dir(tmp_path, monkeypatch):
    """Override the global ~/.reqcurl directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".reqcurl"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


class FakeSecretStore(SecretStore):
    """In-memory store. Pass an Exception as a value to make that lookup fail."""

    def __init__(self, collections=None, environments=None):
        self.collections = collections or {}
        self.environments = environments or {}
        self.calls = []

    async def get_secrets_by_collection(self, collection_id):
        self.calls.append(("collection", collection_id))
        return self._get(self.collections, collection_id)

    async def get_secrets_by_environment(self, environment_id):
        self.calls.append(("environment", environment_id))
        return self._get(self.environments, environment_id)

    @staticmethod
    def _get(source, owner_id):
        value = source.get(owner_id, {})
        if isinstance(value, Exception):
            raise value
        return [{"key": k, "value": v} for k, v in value.items()]


def make_request(**overrides):
    """Factory for a fully populated POST request model."""
    fields = {
        "method": "POST",
        "url": "https://api.example.com/users",
        "headers": [
            KeyValue("Content-Type", "application/json"),
            KeyValue("Authorization", "Bearer abc"),
        ],
        "body_type": "raw",
        "body_content": '{"name":"John"}',
    }
    fields.update(overrides)
    return RequestModel(**fields)


def make_form_request():
    return RequestModel(
        method="POST",
        url="https://api.example.com/upload",
        body_type="form-data",
        form_data=[
            FormField("title", "Report"),
            FormField("file", "/tmp/report.pdf", type="file"),
        ],
    )
