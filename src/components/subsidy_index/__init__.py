"""Reference subsidy index component."""

from src.components.subsidy_index.models import SubsidyRecord
from src.components.subsidy_index.store import SubsidyIndex, normalize_name

__all__ = [
    "SubsidyIndex",
    "SubsidyRecord",
    "normalize_name",
]
