"""Engine configuration (combat context limits, narrative budget, LLM connection, stats sink).

Stored as config.json under the data directory. get_config() returns the
defaults merged with stored values section by section; update_config()
applies a partial update and persists the full result:

    {
      "combat":         {history_lines, line_char_cap, prompt_token_budget,
                         reply_token_budget, temperature, disable_world_info, enabled,
                         fallback_connection},
      "narrative":      {reply_token_budget, temperature},
      "llm_connection": {provider_url, api_key, provider_format, model},
      "stats_sink":     {base_url, campaign_id},
      "player":         {character_id, names}
    }

combat.fallback_connection has the llm_connection shape. An empty provider_url
means combat turns go to the same connection as narrative turns.

Unknown sections in the stored file are ignored with a warning.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_CONFIG_DEFAULTS: dict[str, Any] = {
    "combat": {
        "enabled": True,
        "history_lines": 3,
        "line_char_cap": 200,
        "prompt_token_budget": 4000,
        "reply_token_budget": 150,
        "temperature": 0.7,
        "disable_world_info": True,
        "fallback_connection": {
            "provider_url": "",
            "api_key": "",
            "provider_format": "koboldcpp",
            "model": "",
        },
    },
    "narrative": {
        "reply_token_budget": 512,
        "temperature": 0.9,
    },
    "llm_connection": {
        "provider_url": "",
        "api_key": "",
        "provider_format": "koboldcpp",
        "model": "",
    },
    "stats_sink": {
        "base_url": "",
        "campaign_id": "",
    },
    "player": {
        "character_id": "player",
        "names": [],
    },
}


class CombatSettings(BaseModel):
    enabled: bool = True
    history_lines: int = Field(default=3, ge=0)
    line_char_cap: int = Field(default=200, gt=0)
    prompt_token_budget: int = Field(default=4000, gt=0)
    reply_token_budget: int = Field(default=150, gt=0)
    temperature: float = 0.7
    disable_world_info: bool = True
    fallback_connection: dict[str, Any] = Field(default_factory=dict)


class NarrativeSettings(BaseModel):
    reply_token_budget: int = Field(default=512, gt=0)
    temperature: float = 0.9


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def get_config(data_dir: Path | None = None) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = copy.deepcopy(_CONFIG_DEFAULTS)
    if data_dir is None:
        return config
    path = _config_path(data_dir)
    if path.is_file():
        stored = json.loads(path.read_text())
        for section, values in stored.items():
            if section not in config:
                logger.warning("Ignoring unknown config section %r", section)
                continue
            if isinstance(values, dict):
                config[section].update(values)
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config(data_dir)
    for section, values in fields.items():
        if section in config and isinstance(values, dict):
            config[section].update(values)
    data_dir.mkdir(parents=True, exist_ok=True)
    _config_path(data_dir).write_text(json.dumps(config, indent=2))
    return config


def combat_settings(config: dict[str, Any]) -> CombatSettings:
    return CombatSettings.model_validate(config.get("combat", {}))


def narrative_settings(config: dict[str, Any]) -> NarrativeSettings:
    return NarrativeSettings.model_validate(config.get("narrative", {}))
