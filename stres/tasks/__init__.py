"""Task lifecycle tracking: per-type trigger tables, quality assessment, ledger."""

from .ledger import LedgerUpdate, TaskLedger  # noqa: F401
from .patterns import TASK_PATTERNS, TaskPatterns, extract_detail  # noqa: F401
from .quality import assess_quality, quality_class  # noqa: F401
