"""Combat mode: detection, lightweight context and the Narrative ↔ Combat state machine.

  bestiary    CharacterLookup protocol, built-in monster table, default stats
  context     build_combat_context(): reduced prompt, roster, history, tools, budgets
  controller  ModeController: snapshot on entry, restore + reward on exit

While combat is active every outbound model request is rebuilt from the
lightweight context; the rewriting is released on every exit path.
"""

from .bestiary import (  # noqa: F401
    DEFAULT_STATS,
    Bestiary,
    CharacterLookup,
    CombatantStats,
)
from .context import (  # noqa: F401
    COMBAT_TOOLS,
    CombatContext,
    ToolSpec,
    build_combat_context,
    estimate_tokens,
    status_line,
)
from .controller import (  # noqa: F401
    ModeController,
    ModeTransition,
    combat_summary,
)
