"""FastMCP server exposing one Engine's combat and task state as MCP tools.

Tools:
  - combat_status()                               mode, combat session, active tasks
  - active_tasks()                                in-progress tasks with elapsed minutes
  - cancel_task(task_id)                          cancel one task
  - end_combat(reason)                            manual flee/surrender
  - update_participant(participant_id, hp, conditions)
  - advance_round()

The server is built around an explicit engine; tests pass their own.

Usage:
    python -m stres.mcp_server
"""

from typing import Any

from mcp.server.fastmcp import FastMCP

from stres.engine import Engine
from stres.models import EngineOutcome


def build_server(engine: Engine, name: str = "stres-engine") -> FastMCP:
    mcp = FastMCP(name)

    async def _report(outcome: EngineOutcome) -> dict[str, Any]:
        sink_errors = await engine.deliver(outcome)
        return {**outcome.model_dump(mode="json"), "sink_errors": sink_errors}

    @mcp.tool()
    def combat_status() -> dict:
        """Current mode, the live combat session (if any) and active tasks."""
        return engine.status()

    @mcp.tool()
    def active_tasks() -> dict:
        """In-progress tasks with elapsed minutes."""
        return {"tasks": engine.active_tasks()}

    @mcp.tool()
    def cancel_task(task_id: str) -> dict:
        """Cancel an in-progress task. Returns the cancelled task."""
        try:
            task = engine.cancel_task(task_id)
        except KeyError:
            raise ValueError(f"Unknown task {task_id!r}")
        return task.model_dump(mode="json")

    @mcp.tool()
    async def end_combat(reason: str = "fled") -> dict:
        """End the active combat (flee, surrender). No-op when not in combat."""
        return await _report(engine.end_combat(reason))

    @mcp.tool()
    async def update_participant(
        participant_id: str,
        hp: int | None = None,
        conditions: list[str] | None = None,
    ) -> dict:
        """Set a combatant's HP and/or conditions. Combat ends when every enemy is down."""
        try:
            outcome = engine.update_participant(
                participant_id, hp, set(conditions) if conditions is not None else None,
            )
        except KeyError:
            raise ValueError(f"Unknown participant {participant_id!r}")
        return await _report(outcome)

    @mcp.tool()
    async def advance_round() -> dict:
        """Advance the combat round counter."""
        return await _report(engine.advance_round())

    return mcp


if __name__ == "__main__":
    import logging
    import os
    from pathlib import Path

    from stres.config import get_config

    logging.basicConfig(level=logging.INFO)
    data_dir = Path(os.getenv("DATA_DIR", "data"))
    build_server(Engine(config=get_config(data_dir))).run()
