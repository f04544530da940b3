from stres.triggers import QUALITY_INDICATORS, QUALITY_MULTIPLIERS, match_line


def quality_class(text: str) -> str:
    """Return the quality class named by the line's vocabulary, or "default"."""
    found = match_line(text, QUALITY_INDICATORS)
    return found.tag if found else "default"


def assess_quality(text: str) -> float:
    return QUALITY_MULTIPLIERS[quality_class(text)]
