"""In-memory registry of live engines, one per conversation.

Session ids are slugs of the requested title ("Goblin Cave" → "goblin-cave"),
suffixed with a counter on collision. Engines are process-lifetime only.
"""

import logging
import re
import unicodedata
from pathlib import Path

from stres.combat.bestiary import CharacterLookup
from stres.config import get_config
from stres.engine import Engine
from stres.sinks import sink_from_config

logger = logging.getLogger(__name__)


def slugify(title: str) -> str:
    text = unicodedata.normalize("NFKD", title)
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    text = re.sub(r"['\"]", "", text)
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    return text or "session"


class SessionRegistry:
    def __init__(self, data_dir: Path | None = None, lookup: CharacterLookup | None = None) -> None:
        self.data_dir = data_dir
        self._lookup = lookup
        self._engines: dict[str, Engine] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._engines

    def __len__(self) -> int:
        return len(self._engines)

    def ids(self) -> list[str]:
        return list(self._engines)

    def create(self, title: str = "session", character_id: str | None = None) -> tuple[str, Engine]:
        base = slugify(title)
        session_id = base
        counter = 2
        while session_id in self._engines:
            session_id = f"{base}-{counter}"
            counter += 1

        config = get_config(self.data_dir)
        engine = Engine(
            character_id=character_id,
            config=config,
            lookup=self._lookup,
            sink=sink_from_config(config),
        )
        self._engines[session_id] = engine
        logger.info("Session %s created for %s", session_id, engine.character_id)
        return session_id, engine

    def get(self, session_id: str) -> Engine:
        """Raises KeyError for an unknown session."""
        return self._engines[session_id]

    def delete(self, session_id: str) -> bool:
        return self._engines.pop(session_id, None) is not None
