"""Automatic search filter extraction from user questions."""

from src.components.auto_filter.generator import AutoFilterGenerator
from src.components.auto_filter.models import (
    AmountFilter,
    AreaFilter,
    CompanyFilter,
    DeadlineFilter,
    PurposeFilter,
    SubsidyFilter,
)

__all__ = [
    "AmountFilter",
    "AreaFilter",
    "AutoFilterGenerator",
    "CompanyFilter",
    "DeadlineFilter",
    "PurposeFilter",
    "SubsidyFilter",
]
