"""Provider settings and the startup configuration loader."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHAINSHEET_"
ENV_KEYS: Dict[str, str] = {
    "PROVIDER": "provider",
    "LOCAL_BASE_URL": "local_base_url",
    "LOCAL_MODEL": "local_model_name",
    "HOSTED_MODEL": "hosted_model_name",
}


class ProviderType(str, Enum):
    HOSTED = "hosted"
    LOCAL = "local"


def parse_provider(raw: Any) -> ProviderType:
    if isinstance(raw, ProviderType):
        return raw
    value = str(raw or "").strip().lower()
    if value in {"local", "ollama", "openai_compatible"}:
        return ProviderType.LOCAL
    if value in {"", "hosted", "openai", "cloud"}:
        return ProviderType.HOSTED
    raise ValueError(f"Unknown provider: {raw}")


@dataclass(frozen=True, slots=True)
class Settings:
    provider: ProviderType = ProviderType.HOSTED
    local_base_url: str = "http://localhost:11434"
    local_model_name: str = "llama3"
    hosted_model_name: str = "gpt-4o-mini"
    hosted_api_key: str | None = None
    request_timeout: float | None = None

    @property
    def provider_label(self) -> str:
        return "Local LLM" if self.provider is ProviderType.LOCAL else "Hosted model"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["provider"] = self.provider.value
        return data


def settings_from_dict(data: Mapping[str, Any], base: Settings | None = None) -> Settings:
    """Build settings from a loose mapping, ignoring unknown keys."""

    known = {f.name for f in fields(Settings)}
    changes: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.debug("Ignoring unknown settings key %r", key)
            continue
        if key == "provider":
            try:
                value = parse_provider(value)
            except ValueError:
                logger.warning("Ignoring unknown provider %r", value)
                continue
        elif key == "request_timeout":
            if value is not None:
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    logger.warning("Ignoring invalid request_timeout %r", value)
                    continue
        elif value is not None:
            value = str(value)
        changes[key] = value
    return replace(base or Settings(), **changes)


def load_settings_file(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Settings file %s is not valid JSON; using defaults", path)
        return {}
    return dict(data) if isinstance(data, dict) else {}


def env_overrides(environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    out: Dict[str, Any] = {}
    for suffix, key in ENV_KEYS.items():
        value = env.get(ENV_PREFIX + suffix)
        if value:
            out[key] = value
    return out


def load_settings(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """Defaults, then the optional JSON file, then ``CHAINSHEET_*`` variables."""

    settings = Settings()
    if path is not None:
        settings = settings_from_dict(load_settings_file(Path(path).expanduser()), settings)
    return settings_from_dict(env_overrides(environ), settings)


__all__ = [
    "ProviderType",
    "Settings",
    "env_overrides",
    "load_settings",
    "load_settings_file",
    "parse_provider",
    "settings_from_dict",
]
