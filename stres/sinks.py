"""Stats/skill sink: applies RewardCommands to a persisted character record.

HttpStatsSink talks to the STRES backend tool endpoint:

    POST {base_url}/api/tools/execute
      {"tool_name": "update_character_stats", "parameters": {character_id, campaign_id, changes, reason, note}}
      {"tool_name": "learn_skill",            "parameters": {character_id, campaign_id, skill_name, experience_gained}}

One update_character_stats call is made when the command has stat deltas,
then one learn_skill call per skill delta.

Rewards are fire and forget from the engine's point of view: dispatch_rewards()
logs every failure and returns it, and never touches task or combat state.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

import httpx

from stres.models import RewardCommand

logger = logging.getLogger(__name__)


class StatsSink(Protocol):
    async def apply(self, command: RewardCommand) -> None: ...


class StatsSinkError(RuntimeError):
    """Raised when the stats backend cannot be reached or rejects a command."""


class HttpStatsSink:
    def __init__(self, base_url: str, campaign_id: str = "", timeout: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._campaign_id = campaign_id
        self._timeout = timeout

    def tool_calls(self, command: RewardCommand) -> list[dict]:
        """The tool calls one command expands to, in send order."""
        common = {"character_id": command.target_character_id}
        if self._campaign_id:
            common["campaign_id"] = self._campaign_id

        calls: list[dict] = []
        if command.stat_deltas:
            calls.append({
                "tool_name": "update_character_stats",
                "parameters": {
                    **common,
                    "changes": dict(command.stat_deltas),
                    "reason": command.reason,
                    "note": command.note,
                },
            })
        for skill, xp in command.skill_deltas.items():
            calls.append({
                "tool_name": "learn_skill",
                "parameters": {**common, "skill_name": skill, "experience_gained": xp},
            })
        return calls

    async def apply(self, command: RewardCommand) -> None:
        url = f"{self._base_url}/api/tools/execute"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                for call in self.tool_calls(command):
                    logger.debug("sink call %s for %s", call["tool_name"], command.target_character_id)
                    resp = await client.post(url, json=call)
                    resp.raise_for_status()
        except httpx.ConnectError as e:
            raise StatsSinkError(f"Cannot connect to stats backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise StatsSinkError(f"Stats backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise StatsSinkError(f"Stats backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise StatsSinkError(f"Stats backend request failed: {e}") from e


async def dispatch_rewards(
    sink: StatsSink | None,
    commands: Iterable[RewardCommand],
) -> list[str]:
    """Apply each command in order. Returns one error message per failure."""
    errors: list[str] = []
    if sink is None:
        return errors
    for command in commands:
        try:
            await sink.apply(command)
        except StatsSinkError as e:
            logger.warning("Reward for %s not applied: %s", command.target_character_id, e)
            errors.append(str(e))
    return errors


def sink_from_config(config: dict) -> HttpStatsSink | None:
    """HttpStatsSink for the stats_sink config section, or None when no base_url is set."""
    section = config.get("stats_sink", {})
    if not section.get("base_url"):
        return None
    return HttpStatsSink(section["base_url"], section.get("campaign_id", ""))
