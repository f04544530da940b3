"""Context snapshot store: capture conversation state on combat entry, restore once on exit."""

import logging

from stres.models import ContextSnapshot, Conversation

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Holds at most one pending snapshot for a single conversation.

    capture() while a snapshot is pending returns that snapshot unchanged.
    restore() of a consumed or absent snapshot is a no-op: the narrative
    stream can produce an end trigger with no matching start.
    """

    def __init__(self, conversation: Conversation) -> None:
        self._conversation = conversation
        self._pending: ContextSnapshot | None = None

    @property
    def pending(self) -> ContextSnapshot | None:
        return self._pending

    def capture(self) -> ContextSnapshot:
        if self._pending is not None:
            return self._pending
        conv = self._conversation
        self._pending = ContextSnapshot(
            captured_messages=[m.model_copy() for m in conv.messages],
            message_count=len(conv.messages),
            world_info_enabled=conv.world_info_enabled,
        )
        logger.debug("Captured snapshot at %d messages", self._pending.message_count)
        return self._pending

    def restore(self, snapshot: ContextSnapshot | None = None) -> bool:
        """Truncate the conversation to the captured length and restore world info.

        Returns True if a restore happened, False for the no-op cases.
        """
        snapshot = snapshot or self._pending
        if snapshot is None or snapshot.consumed:
            logger.debug("Restore skipped: no pending snapshot")
            return False

        conv = self._conversation
        removed = len(conv.messages) - snapshot.message_count
        if removed > 0:
            del conv.messages[snapshot.message_count:]
        conv.world_info_enabled = snapshot.world_info_enabled
        snapshot.consumed = True
        if snapshot is self._pending:
            self._pending = None
        logger.debug("Restored snapshot, dropped %d combat messages", max(removed, 0))
        return True
