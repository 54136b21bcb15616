"""
Personality quiz scoring.

- traits: quiz answers -> DimensionScores (raw sums per axis, attachment style)
- archetypes: DimensionScores -> Archetype via an ordered rule table
- profiles: companion guidance per archetype
- processor: validation and persistence of a quiz submission
"""

from .traits import DimensionScores, TraitAnswer, aggregate_traits
from .archetypes import Archetype, ARCHETYPE_RULES, classify_archetype, classify_scores
from .profiles import ArchetypeProfile, get_archetype_profile

__all__ = [
    "DimensionScores",
    "TraitAnswer",
    "aggregate_traits",
    "Archetype",
    "ARCHETYPE_RULES",
    "classify_archetype",
    "classify_scores",
    "ArchetypeProfile",
    "get_archetype_profile",
]
