"""Configuration constants for the questionnaire designer."""

import os

from loguru import logger

# Maximum container nesting depth. Can be overridden with QUESTIONNAIRE_MAX_DEPTH.
MAX_DEPTH: int = 5

# Columns created for a new column layout, or when a layout lost its columns.
DEFAULT_COLUMN_COUNT: int = 2

# Upper bound on the number of accordion sections.
DEFAULT_MAX_SECTIONS: int = 10

# Fraction of a container's height at the top and bottom that counts as
# "before"/"after" the container; the band in between drops inside it.
CONTAINER_EDGE_FRACTION: float = 1 / 3

DEFAULT_TAB_LABEL: str = "New Tab"
DEFAULT_SECTION_LABEL: str = "New Section"


def resolve_max_depth() -> int:
    """Return the max depth from the environment, falling back to MAX_DEPTH."""
    raw = os.environ.get("QUESTIONNAIRE_MAX_DEPTH")
    if raw is None:
        return MAX_DEPTH
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer QUESTIONNAIRE_MAX_DEPTH={!r}", raw)
        return MAX_DEPTH
    if value < 1:
        logger.warning("Ignoring QUESTIONNAIRE_MAX_DEPTH={} (must be >= 1)", value)
        return MAX_DEPTH
    return value
