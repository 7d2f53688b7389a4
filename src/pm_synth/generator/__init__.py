"""
Generator module for producing table snapshots from seed configurations.

Provides the column generator contract, the built-in generator factories and
the row generation engine.
"""

from pm_synth.generator.engine import RowGenerationEngine, deduplicate
from pm_synth.generator.generators import (
    ChoiceWithoutRepetition,
    ColumnGenerator,
    ForeignRowContext,
)

__all__ = [
    "RowGenerationEngine",
    "deduplicate",
    "ChoiceWithoutRepetition",
    "ColumnGenerator",
    "ForeignRowContext",
]
