"""Workspace configuration loaded from ``config.yml``."""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


logger = logging.getLogger("prodsys.config")

CONFIG_FILENAME = "config.yml"
WORKSPACE_ENV = "PRODSYS_WORKSPACE"
PROVIDER_ENV = "PRODSYS_AI_PROVIDER"

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "ai": {
        "provider": "anthropic",
        "model": "claude-3-haiku-20240307",
        "api_key_env": "ANTHROPIC_API_KEY",
        "max_tokens": 1000,
        "temperature": 0.3,
    },
    "system": {
        "workspace_dir": ".",
        "backup_enabled": True,
        "auto_save": False,
    },
    "reflection": {
        "weekly": 7,
        "monthly": 30,
    },
    "zoom": {
        "default_level": 1,
        "show_context": True,
    },
}


@dataclass(slots=True)
class AIConfig:
    provider: str = "anthropic"
    model: str = "claude-3-haiku-20240307"
    api_key_env: str = "ANTHROPIC_API_KEY"
    max_tokens: int = 1000
    temperature: float = 0.3


@dataclass(slots=True)
class SystemConfig:
    workspace_dir: str = "."
    backup_enabled: bool = True
    auto_save: bool = False


@dataclass(slots=True)
class Config:
    """Merged configuration: user values over defaults, section by section."""

    ai: AIConfig = field(default_factory=AIConfig)
    system: SystemConfig = field(default_factory=SystemConfig)
    reflection: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_CONFIG["reflection"]))
    zoom: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_CONFIG["zoom"]))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        merged = copy.deepcopy(DEFAULT_CONFIG)
        for section, values in (data or {}).items():
            if section in merged and isinstance(values, dict):
                merged[section].update(values)
        ai_fields = {k: v for k, v in merged["ai"].items() if k in AIConfig.__dataclass_fields__}
        system_fields = {k: v for k, v in merged["system"].items() if k in SystemConfig.__dataclass_fields__}
        return cls(
            ai=AIConfig(**ai_fields),
            system=SystemConfig(**system_fields),
            reflection=merged["reflection"],
            zoom=merged["zoom"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ai": {
                "provider": self.ai.provider,
                "model": self.ai.model,
                "api_key_env": self.ai.api_key_env,
                "max_tokens": self.ai.max_tokens,
                "temperature": self.ai.temperature,
            },
            "system": {
                "workspace_dir": self.system.workspace_dir,
                "backup_enabled": self.system.backup_enabled,
                "auto_save": self.system.auto_save,
            },
            "reflection": dict(self.reflection),
            "zoom": dict(self.zoom),
        }


def load_config(workspace_dir: Path | str) -> Config:
    """Load ``config.yml`` from the workspace, falling back to defaults."""
    config_path = Path(workspace_dir) / CONFIG_FILENAME
    config = Config()

    if config_path.exists():
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
            if not isinstance(data, dict):
                raise ValueError("top-level YAML value must be a mapping")
            config = Config.from_dict(data)
        except (yaml.YAMLError, ValueError, TypeError) as e:
            logger.warning(f"Could not parse {config_path}, using defaults: {e}")

    provider = os.getenv(PROVIDER_ENV)
    if provider:
        config.ai.provider = provider.strip().lower()

    return config
