"""Task ledger: tracks multi-turn activities and rewards their completion.

One line is processed in two passes:

  1. End pass: for every task type with in-progress tasks, the fail, abandon
     and complete tables are tried in that order. The matched task is the one
     whose subject appears in the line, else the most recently started one.
       complete → quality from the line's vocabulary, reward emitted
       fail     → completed at the failure multiplier, reward emitted
       abandon  → status failed, no reward
  2. Start pass: the first task type whose start table matches creates a
     task (pending → in_progress). A start for a type+subject that is
     already in progress counts as another attempt instead.

In-progress tasks never expire; they stay active until completed, failed,
cancelled or superseded.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Collection
from datetime import datetime

from pydantic import BaseModel, Field

from stres.combat.bestiary import Bestiary, CharacterLookup
from stres.models import Task, TaskReward, TaskType
from stres.rewards import reward_for_task
from stres.tasks.patterns import TASK_PATTERNS, extract_detail, parse_hours
from stres.tasks.quality import assess_quality
from stres.triggers import QUALITY_MULTIPLIERS, TriggerMatch, match_line

logger = logging.getLogger(__name__)


class LedgerUpdate(BaseModel):
    """Tasks touched by one observed line."""

    started: list[Task] = Field(default_factory=list)
    continued: list[Task] = Field(default_factory=list)
    completed: list[Task] = Field(default_factory=list)
    failed: list[Task] = Field(default_factory=list)
    rewards: list[TaskReward] = Field(default_factory=list)


class TaskLedger:
    def __init__(self, character_id: str = "player", lookup: CharacterLookup | None = None) -> None:
        self.character_id = character_id
        self._lookup = lookup or Bestiary()
        self._active: dict[str, Task] = {}
        self._finished: dict[str, Task] = {}
        self._ids = itertools.count(1)

    # ── Queries ───────────────────────────────────────────

    def active(self, task_type: TaskType | None = None) -> list[Task]:
        """In-progress tasks in start order, optionally of one type."""
        return [
            t for t in self._active.values()
            if task_type is None or t.type == task_type
        ]

    def get(self, task_id: str) -> Task:
        """Look up any task this ledger has seen. Raises KeyError."""
        if task_id in self._active:
            return self._active[task_id]
        return self._finished[task_id]

    def elapsed(self, now: datetime | None = None) -> dict[str, float]:
        return {t.id: round(t.elapsed_minutes(now), 1) for t in self._active.values()}

    # ── Narrative lines ───────────────────────────────────

    def observe(self, text: str, exclude: Collection[TaskType] = ()) -> LedgerUpdate:
        update = LedgerUpdate()
        if not text:
            return update

        for task_type, patterns in TASK_PATTERNS.items():
            if task_type in exclude or not self.active(task_type):
                continue
            for outcome, table in (
                ("fail", patterns.fail),
                ("abandon", patterns.abandon),
                ("complete", patterns.complete),
            ):
                found = match_line(text, table)
                if found:
                    self._finish(task_type, outcome, found, update)
                    break

        for task_type, patterns in TASK_PATTERNS.items():
            if task_type in exclude:
                continue
            found = match_line(text, patterns.start)
            if found:
                self._start(task_type, found, update)
                break

        return update

    def _start(self, task_type: TaskType, found: TriggerMatch, update: LedgerUpdate) -> None:
        detail = extract_detail(task_type, found.text, found.captures, self._lookup)
        for task in self.active(task_type):
            if task.detail.subject == detail.subject:
                task.attempts += 1
                logger.debug("Task %s attempt %d", task.id, task.attempts)
                update.continued.append(task)
                return

        task = Task(
            id=f"{task_type}-{next(self._ids)}",
            type=task_type,
            character_id=self.character_id,
            detail=detail,
        )
        task.transition("in_progress")
        self._active[task.id] = task
        update.started.append(task)
        logger.info("Task %s started: %s", task.id, detail.subject or task_type)

    def _finish(
        self,
        task_type: TaskType,
        outcome: str,
        found: TriggerMatch,
        update: LedgerUpdate,
    ) -> None:
        task = self._target(task_type, found.text)

        if outcome == "abandon":
            task.transition("failed")
            self._retire(task)
            update.failed.append(task)
            logger.info("Task %s abandoned", task.id)
            return

        if task.type == "training":
            hours = parse_hours(found.text)
            if hours:
                task.detail.duration_hours = hours
        if outcome == "fail":
            task.quality = QUALITY_MULTIPLIERS["failure"]
        else:
            task.quality = assess_quality(found.text)
        task.transition("completed")
        self._retire(task)
        update.completed.append(task)

        reward = reward_for_task(task)
        if reward is not None:
            update.rewards.append(reward)
        logger.info("Task %s completed at quality %s", task.id, task.quality)

    def _target(self, task_type: TaskType, text: str) -> Task:
        candidates = self.active(task_type)
        lowered = text.lower()
        for task in reversed(candidates):
            subject = task.detail.subject
            if subject and subject in lowered:
                return task
        return candidates[-1]

    def _retire(self, task: Task) -> None:
        self._active.pop(task.id, None)
        self._finished[task.id] = task

    # ── External commands ─────────────────────────────────

    def cancel(self, task_id: str) -> Task:
        """Cancel a task by id.

        Raises KeyError for an unknown id and TaskStateError when the task
        has already finished.
        """
        task = self.get(task_id)
        task.transition("cancelled")
        self._retire(task)
        logger.info("Task %s cancelled", task.id)
        return task

    def supersede(self, task_type: TaskType) -> list[Task]:
        """Cancel every in-progress task of one type."""
        return [self.cancel(t.id) for t in self.active(task_type)]

    def clear(self) -> list[Task]:
        return [self.cancel(t.id) for t in self.active()]
