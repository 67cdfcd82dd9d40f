"""Entity extraction component for subsidy answers."""

from src.components.entity_extraction.extractor import (
    EntityExtractor,
    PatternEntityExtractor,
    parse_amount,
)
from src.components.entity_extraction.models import ExtractedEntity

__all__ = [
    "EntityExtractor",
    "ExtractedEntity",
    "PatternEntityExtractor",
    "parse_amount",
]
