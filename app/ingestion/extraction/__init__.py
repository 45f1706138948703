"""
Entry-point location and record extraction.
"""

from app.ingestion.extraction.amounts import parse_amount, strip_amount
from app.ingestion.extraction.records import RecordExtractor
from app.ingestion.extraction.strategies import (
    AttributeMatchStrategy,
    FallbackContainerStrategy,
    LocateStrategy,
    StrategyChain,
    VisibleTextStrategy,
    default_strategies,
)

__all__ = [
    "AttributeMatchStrategy",
    "FallbackContainerStrategy",
    "LocateStrategy",
    "RecordExtractor",
    "StrategyChain",
    "VisibleTextStrategy",
    "default_strategies",
    "parse_amount",
    "strip_amount",
]
