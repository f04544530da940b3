"""Per-task-type trigger tables and detail extraction.

Each task type has four ordered tables:
  start     creates (or continues) a task; captures "subject" and sometimes "verb"
  complete  completes an in-progress task; quality assessed from the line
  fail      completes it with the failure multiplier (partial credit)
  abandon   marks it failed with no reward

TASK_PATTERNS is ordered: combat, crafting, training, social, exploration,
magic. A start line creates at most one task, of the first type that matches.

extract_detail() turns a start line into the type-specific detail payload:
  combat       enemy name + level (explicit "level N", lookup, default 1)
  crafting     material, item, skill (item table → crafting verb → "crafting"), item level by material
  training     skill, duration in hours (default 1)
  social       skill from the verb, target
  exploration  area
  magic        spell, school ("fire_magic"…), spell level (lesser 1, default 2, greater 3)
"""

import re
from typing import NamedTuple

from stres.combat.bestiary import CharacterLookup, lookup_level
from stres.models import (
    CombatDetail,
    CraftingDetail,
    ExplorationDetail,
    MagicDetail,
    SocialDetail,
    TaskDetail,
    TaskType,
    TrainingDetail,
)
from stres.triggers import TriggerRule, const, groups, rule


class TaskPatterns(NamedTuple):
    start: list[TriggerRule]
    complete: list[TriggerRule]
    fail: list[TriggerRule]
    abandon: list[TriggerRule]


_ART = r"(?:the\s+|a\s+|an\s+)?"

TASK_PATTERNS: dict[TaskType, TaskPatterns] = {
    "combat": TaskPatterns(
        start=[
            rule("start", rf"\b(?:attacks?|engages?|fights?|ambush(?:es)?)\s+{_ART}(?:level[\s-]*\d+\s+)?(\w+)", groups("subject")),
        ],
        complete=[
            rule("complete", r"\b(\w+)\s+(?:is\s+|has\s+been\s+)?(?:defeated|dead|killed|slain)", groups("subject")),
            rule("complete", rf"\bdefeats?\s+{_ART}(\w+)", groups("subject")),
            rule("complete", rf"\bkills?\s+{_ART}(\w+)", groups("subject")),
            rule("complete", rf"\bvictory\s+(?:over|against)\s+{_ART}(\w+)", groups("subject")),
        ],
        fail=[
            rule("fail", rf"\b{_ART}(\w+)\s+(?:escapes|gets\s+away|slips\s+away)", groups("subject")),
        ],
        abandon=[
            rule("abandon", rf"\b(?:flees?|retreats?|runs?\s+away)\s+from\s+{_ART}(\w+)", groups("subject")),
            rule("abandon", r"\bsurrenders?\b"),
        ],
    ),
    "crafting": TaskPatterns(
        start=[
            rule("start", r"\b(?:starts?|begins?)\s+(crafting|making|creating|forging|brewing|cooking|smelting|smithing|sewing|carving|tanning)\s+(.+)", groups("verb", "subject")),
            rule("start", r"\b(?:attempts?|tries|try)\s+to\s+(craft|make|create|forge|brew|cook|smelt|sew|carve|tan)\s+(.+)", groups("verb", "subject")),
        ],
        complete=[
            rule("complete", r"\b(?:finishes?|completes?)\s+(?:crafting|making|creating|forging|brewing|cooking|smelting|smithing|sewing|carving|tanning)\s+(.+)", groups("subject")),
            rule("complete", r"\b(?:successfully|finally)\s+(?:crafts?|makes?|creates?|forges?|brews?|cooks?|smelts?|sews?|carves?|tans?)\s+(.+)", groups("subject")),
            rule("complete", r"\b(\w+)\s+(?:is|are)\s+(?:complete|finished|ready|done)\b", groups("subject")),
        ],
        fail=[
            rule("fail", rf"\b(?:ruins?|botch(?:es)?|burns?)\s+{_ART}(.+)", groups("subject")),
            rule("fail", r"\b(\w+)\s+(?:cracks?|shatters?|melts?\s+down)", groups("subject")),
            rule("fail", r"\b(?:crafting|forging|brewing|smelting)\s+fails?"),
        ],
        abandon=[
            rule("abandon", r"\b(?:abandons?|gives?\s+up\s+on|stops?)\s+(?:crafting|making|forging|brewing|smelting|cooking)"),
        ],
    ),
    "training": TaskPatterns(
        start=[
            rule("start", r"\b(?:begins?|starts?)\s+(?:training|practicing|practising)\s+(\w+)", groups("subject")),
            rule("start", r"\b(?:spends?|dedicates?)\s+(?:\w+\s+)?(?:hours?\s+)?(?:training|practicing|practising)\s+(\w+)", groups("subject")),
            rule("start", r"\b(?:attempts?|tries|try)\s+(?:to\s+pick\s+)?(?:the\s+)?lock\b", const(subject="lockpicking")),
        ],
        complete=[
            rule("complete", r"\b(?:finishes?|completes?)\s+(?:the\s+|a\s+|(?:his|her|their|my|your)\s+)?(?:training|practice)"),
            rule("complete", r"\b(?:hours?|session)\s+of\s+(?:training|practice)\s+(?:ends?|complete)"),
            rule("complete", r"\b(?:stops?|ends?)\s+(?:training|practicing|practising)"),
            rule("complete", r"\b(?:picks?|opens?)\s+the\s+lock", const(subject="lockpicking")),
            rule("complete", r"\block\s+(?:clicks|opens|gives\s+way)", const(subject="lockpicking")),
        ],
        fail=[
            rule("fail", r"\block\s*picks?\s+(?:breaks?|snaps?)", const(subject="lockpicking")),
            rule("fail", r"\b(?:training|practice)\s+(?:fails?|goes\s+badly)"),
        ],
        abandon=[
            rule("abandon", r"\b(?:gives?\s+up|abandons?)\s+(?:on\s+)?(?:the\s+)?(?:training|practice|lock)"),
        ],
    ),
    "social": TaskPatterns(
        start=[
            rule("start", rf"\b(?:begins?|starts?)\s+(negotiating|persuading|intimidating|charming|bargaining|haggling)(?:\s+with)?\s*{_ART}(\w+)?", groups("verb", "subject")),
            rule("start", rf"\b(?:attempts?|tries|try)\s+to\s+(negotiate|persuade|intimidate|charm|bargain|haggle)\s+(?:with\s+)?{_ART}(\w+)", groups("verb", "subject")),
        ],
        complete=[
            rule("complete", r"\bsuccessfully\s+(?:negotiates?|persuades?|intimidates?|charms?|bargains?|haggles?)"),
            rule("complete", r"\b(?:deal|agreement|arrangement|bargain)\s+(?:is\s+)?(?:struck|made|reached)"),
            rule("complete", r"\b(?:wins?|gains?|earns?)\s+(?:their|his|her|its)\s+(?:trust|favou?r|agreement)"),
        ],
        fail=[
            rule("fail", rf"\b(?:refuses?|rejects?)\s+{_ART}(?:offer|deal|proposal)"),
            rule("fail", r"\b(?:is|are|seems?)\s+(?:offended|insulted|unmoved|unconvinced)"),
        ],
        abandon=[
            rule("abandon", rf"\b(?:walks?\s+away\s+from|breaks?\s+off)\s+{_ART}(?:negotiations?|talks|conversation)"),
        ],
    ),
    "exploration": TaskPatterns(
        start=[
            rule("start", rf"\b(?:begins?|starts?)\s+(?:exploring|searching|investigating)\s+{_ART}(.+)", groups("subject")),
            rule("start", rf"\b(?:enters?|delves?\s+into|ventures?\s+into)\s+{_ART}(.+)", groups("subject")),
        ],
        complete=[
            rule("complete", rf"\b(?:finishes?|completes?)\s+(?:exploring|searching|investigating)\s+{_ART}(.+)", groups("subject")),
            rule("complete", r"\bfully\s+(?:explored|searched|investigated)"),
            rule("complete", rf"\b(?:exits?|leaves?|emerges?\s+from)\s+{_ART}(.+)", groups("subject")),
        ],
        fail=[
            rule("fail", r"\b(?:gets?|got|is|are)\s+lost\b"),
            rule("fail", r"\b(?:path|way|passage|tunnel)\s+(?:is\s+)?(?:blocked|collapses?)"),
        ],
        abandon=[
            rule("abandon", r"\b(?:turns?\s+back|abandons?\s+the\s+(?:search|expedition|exploration))"),
        ],
    ),
    "magic": TaskPatterns(
        start=[
            rule("start", rf"\b(?:begins?|starts?)\s+(?:casting|channel{{1,2}}ing|weaving)\s+{_ART}(.*?\bspell)", groups("subject")),
            rule("start", rf"\b(?:prepares?|readies?)\s+{_ART}(.*?\bspell)", groups("subject")),
        ],
        complete=[
            rule("complete", rf"\bsuccessfully\s+(?:casts?|channels?|weaves?)\s+{_ART}(.*?\bspell)", groups("subject")),
            rule("complete", r"\bspell\s+(?:completes?|succeeds?|takes?\s+effect)"),
            rule("complete", r"(\w+(?:\s+\w+)?\s+spell)\s+(?:activates?|triggers?|fires?)", groups("subject")),
        ],
        fail=[
            rule("fail", r"\bspell\s+(?:fizzles?|fails?|backfires?|goes\s+awry)"),
            rule("fail", r"\b(?:loses?|lost)\s+(?:control\s+of\s+)?(?:the\s+)?(?:spell|mana|focus)"),
        ],
        abandon=[
            rule("abandon", r"\b(?:dispels?|cancels?|abandons?)\s+(?:the\s+)?(?:spell|casting)"),
        ],
    ),
}


# ── Detail tables ────────────────────────────────────────

ITEM_SKILLS: dict[str, str] = {
    "sword": "blacksmithing", "armor": "blacksmithing", "armour": "blacksmithing",
    "shield": "blacksmithing", "dagger": "blacksmithing", "axe": "blacksmithing",
    "potion": "alchemy", "elixir": "alchemy", "poison": "alchemy", "tonic": "alchemy",
    "staff": "woodworking", "bow": "woodworking",
    "arrow": "fletching",
    "robe": "tailoring", "cloak": "tailoring",
    "boot": "leatherworking", "boots": "leatherworking",
    "stew": "cooking", "bread": "cooking",
}

VERB_SKILLS: dict[str, str] = {
    "forging": "blacksmithing", "forge": "blacksmithing", "smithing": "blacksmithing",
    "brewing": "alchemy", "brew": "alchemy",
    "cooking": "cooking", "cook": "cooking",
    "smelting": "smelting", "smelt": "smelting",
    "sewing": "tailoring", "sew": "tailoring",
    "carving": "woodworking", "carve": "woodworking",
    "tanning": "leatherworking", "tan": "leatherworking",
}

MATERIAL_LEVELS: dict[str, int] = {
    "wood": 1, "wooden": 1, "cloth": 1, "leather": 1, "herb": 1, "herbal": 1,
    "iron": 1, "copper": 1, "glass": 1,
    "bronze": 2, "steel": 2,
    "silver": 3, "gold": 3,
    "mithril": 5, "adamantine": 6,
}

SOCIAL_SKILLS: dict[str, str] = {
    "negotiat": "negotiation", "bargain": "negotiation", "haggl": "negotiation",
    "persuad": "persuasion",
    "intimidat": "intimidation",
    "charm": "charm",
}

SPELL_SCHOOLS = ("fire", "ice", "frost", "lightning", "healing", "shield", "arcane", "shadow")

WORD_NUMBERS: dict[str, int] = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
}

_MATERIAL_RE = re.compile(
    r"\b(" + "|".join(sorted(MATERIAL_LEVELS, key=len, reverse=True)) + r")\s+(\w+)",
    re.IGNORECASE,
)
_HOURS_RE = re.compile(
    r"\b(\d+(?:\.\d+)?|" + "|".join(WORD_NUMBERS) + r")\s+hours?\b",
    re.IGNORECASE,
)
_ARTICLE_RE = re.compile(r"^(?:the|a|an|some|my|your|his|her|their)\s+", re.IGNORECASE)


def clean_subject(text: str) -> str:
    """Lower-case, strip punctuation and a leading article; cap at 60 chars."""
    text = text.strip().rstrip(".!?,;:").strip()
    text = _ARTICLE_RE.sub("", text)
    return text.lower()[:60]


def singular(word: str) -> str:
    word = word.lower()
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def parse_hours(text: str) -> float | None:
    match = _HOURS_RE.search(text)
    if not match:
        return None
    raw = match.group(1).lower()
    return float(WORD_NUMBERS.get(raw, 0) or raw)


def spell_level(text: str) -> int:
    explicit = re.search(r"\b(?:level|lvl)[\s-]*(\d+)", text, re.IGNORECASE)
    if explicit:
        return int(explicit.group(1))
    if re.search(r"\b(?:greater|major|powerful)\b", text, re.IGNORECASE):
        return 3
    if re.search(r"\b(?:lesser|minor|weak)\b", text, re.IGNORECASE):
        return 1
    return 2


def _combat_detail(text: str, captures: dict[str, str], lookup: CharacterLookup) -> CombatDetail:
    enemy = clean_subject(captures.get("subject", "")) or "enemy"
    return CombatDetail(enemy=enemy, enemy_level=lookup_level(lookup, enemy, text))


def _crafting_detail(text: str, captures: dict[str, str]) -> CraftingDetail:
    subject = clean_subject(captures.get("subject", ""))
    material = ""
    item = subject.split()[-1] if subject else ""
    found = _MATERIAL_RE.search(text)
    if found:
        material = found.group(1).lower()
        item = found.group(2).lower()
    item = clean_subject(item)
    verb = captures.get("verb", "").lower()
    skill = (
        ITEM_SKILLS.get(item)
        or ITEM_SKILLS.get(singular(item))
        or VERB_SKILLS.get(verb)
        or "crafting"
    )
    return CraftingDetail(
        item_type=item,
        material=material,
        skill=skill,
        item_level=MATERIAL_LEVELS.get(material, 1),
    )


def _training_detail(text: str, captures: dict[str, str]) -> TrainingDetail:
    skill = clean_subject(captures.get("subject", "")) or "training"
    return TrainingDetail(skill=skill, duration_hours=parse_hours(text) or 1.0)


def _social_detail(text: str, captures: dict[str, str]) -> SocialDetail:
    verb = captures.get("verb", "").lower()
    skill = next(
        (name for stem, name in SOCIAL_SKILLS.items() if verb.startswith(stem)),
        "persuasion",
    )
    return SocialDetail(skill=skill, target=clean_subject(captures.get("subject", "")))


def _exploration_detail(text: str, captures: dict[str, str]) -> ExplorationDetail:
    return ExplorationDetail(area=clean_subject(captures.get("subject", "")))


def _magic_detail(text: str, captures: dict[str, str]) -> MagicDetail:
    spell = clean_subject(captures.get("subject", ""))
    school = "magic"
    found = re.search(r"\b(" + "|".join(SPELL_SCHOOLS) + r")", text, re.IGNORECASE)
    if found:
        school = f"{found.group(1).lower()}_magic"
    return MagicDetail(spell=spell, school=school, spell_level=spell_level(text))


def extract_detail(
    task_type: TaskType,
    text: str,
    captures: dict[str, str],
    lookup: CharacterLookup,
) -> TaskDetail:
    """Build the type-specific detail payload for a task start line."""
    if task_type == "combat":
        return _combat_detail(text, captures, lookup)
    if task_type == "crafting":
        return _crafting_detail(text, captures)
    if task_type == "training":
        return _training_detail(text, captures)
    if task_type == "social":
        return _social_detail(text, captures)
    if task_type == "exploration":
        return _exploration_detail(text, captures)
    return _magic_detail(text, captures)
