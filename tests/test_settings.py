from __future__ import annotations

import json
from dataclasses import FrozenInstanceError

import pytest

from chainsheet.settings import (
    ProviderType,
    Settings,
    load_settings,
    load_settings_file,
    parse_provider,
    settings_from_dict,
)


def test_defaults() -> None:
    s = Settings()
    assert s.provider is ProviderType.HOSTED
    assert s.local_base_url == "http://localhost:11434"
    assert s.local_model_name == "llama3"
    assert s.hosted_model_name == "gpt-4o-mini"
    assert s.request_timeout is None


def test_settings_are_immutable() -> None:
    s = Settings()
    with pytest.raises(FrozenInstanceError):
        s.provider = ProviderType.LOCAL  # type: ignore[misc]


def test_load_settings_from_file(tmp_path) -> None:
    path = tmp_path / "chainsheet.json"
    path.write_text(
        json.dumps({"provider": "local", "local_model_name": "mistral", "request_timeout": "30", "colour": "red"}),
        encoding="utf-8",
    )
    s = load_settings(path, environ={})
    assert s.provider is ProviderType.LOCAL
    assert s.local_model_name == "mistral"
    assert s.request_timeout == 30.0
    assert s.hosted_model_name == "gpt-4o-mini"


def test_missing_or_invalid_file_yields_defaults(tmp_path) -> None:
    assert load_settings_file(tmp_path / "missing.json") == {}
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert load_settings(bad, environ={}) == Settings()
    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]", encoding="utf-8")
    assert load_settings_file(listing) == {}


def test_environment_overrides_file(tmp_path) -> None:
    path = tmp_path / "chainsheet.json"
    path.write_text(json.dumps({"provider": "hosted", "hosted_model_name": "gpt-4o"}), encoding="utf-8")
    env = {"CHAINSHEET_PROVIDER": "local", "CHAINSHEET_LOCAL_BASE_URL": "http://gpu-box:8080"}
    s = load_settings(path, environ=env)
    assert s.provider is ProviderType.LOCAL
    assert s.local_base_url == "http://gpu-box:8080"
    assert s.hosted_model_name == "gpt-4o"


def test_unknown_provider_is_ignored() -> None:
    s = settings_from_dict({"provider": "carrier-pigeon"})
    assert s.provider is ProviderType.HOSTED


def test_parse_provider_aliases() -> None:
    assert parse_provider("OpenAI") is ProviderType.HOSTED
    assert parse_provider("ollama") is ProviderType.LOCAL
    with pytest.raises(ValueError):
        parse_provider("nope")


def test_to_dict_uses_plain_values() -> None:
    data = Settings(provider=ProviderType.LOCAL).to_dict()
    assert data["provider"] == "local"
    assert settings_from_dict(data) == Settings(provider=ProviderType.LOCAL)
