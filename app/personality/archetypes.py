"""
Archetype Classifier.

A decision table of rules evaluated top to bottom; the first rule whose
conditions all hold decides the archetype. Ties are resolved purely by rule
order, never by score magnitude. The last rule has no conditions so the
classifier is total.
"""

import operator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from app.personality.traits import AttachmentStyle, DimensionScores, aggregate_traits


class Archetype(str, Enum):
    ANXIOUS_ROMANTIC = "anxious_romantic"
    GUARDED_INTELLECTUAL = "guarded_intellectual"
    WARM_EMPATH = "warm_empath"
    DEEP_THINKER = "deep_thinker"
    PASSIONATE_CREATIVE = "passionate_creative"
    SECURE_CONNECTOR = "secure_connector"
    PLAYFUL_EXPLORER = "playful_explorer"


_OPS: dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


@dataclass(frozen=True)
class Condition:
    axis: str
    op: str
    value: float

    def holds(self, scores: DimensionScores) -> bool:
        return _OPS[self.op](scores.get(self.axis, 0.0), self.value)

    def __str__(self) -> str:
        return f"{self.axis} {self.op} {self.value:g}"


@dataclass(frozen=True)
class ArchetypeRule:
    archetype: Archetype
    attachment: Optional[AttachmentStyle] = None
    conditions: tuple[Condition, ...] = ()

    def matches(self, scores: DimensionScores) -> bool:
        if self.attachment is not None and scores.attachment_style != self.attachment:
            return False
        return all(c.holds(scores) for c in self.conditions)


def _c(axis: str, op: str, value: float) -> Condition:
    return Condition(axis, op, value)


# Priority order matters: attachment-driven rules first, then the narrow
# trait-combination rules, then the broad secure rules, then the default.
ARCHETYPE_RULES: tuple[ArchetypeRule, ...] = (
    ArchetypeRule(
        Archetype.ANXIOUS_ROMANTIC,
        attachment="anxious",
        conditions=(_c("thinking_feeling", ">", 0),),
    ),
    ArchetypeRule(
        Archetype.GUARDED_INTELLECTUAL,
        attachment="avoidant",
        conditions=(_c("thinking_feeling", "<", 0),),
    ),
    ArchetypeRule(
        Archetype.PASSIONATE_CREATIVE,
        conditions=(
            _c("thinking_feeling", ">=", 4),
            _c("intuitive_sensing", ">=", 4),
            _c("fantasy_preference", ">=", 3),
        ),
    ),
    ArchetypeRule(
        Archetype.DEEP_THINKER,
        conditions=(
            _c("introversion_extraversion", "<", 0),
            _c("intuitive_sensing", ">", 0),
            _c("thinking_feeling", "<=", 0),
        ),
    ),
    ArchetypeRule(
        Archetype.PLAYFUL_EXPLORER,
        conditions=(
            _c("introversion_extraversion", ">=", 4),
            _c("judging_perceiving", "<", 0),
        ),
    ),
    ArchetypeRule(
        Archetype.WARM_EMPATH,
        attachment="secure",
        conditions=(
            _c("introversion_extraversion", ">", 0),
            _c("thinking_feeling", ">", 0),
        ),
    ),
    ArchetypeRule(
        Archetype.SECURE_CONNECTOR,
        attachment="secure",
        conditions=(_c("stable_neurotic", ">=", 0),),
    ),
    # terminal default
    ArchetypeRule(Archetype.WARM_EMPATH),
)


def match_rule(scores: DimensionScores, rules: Iterable[ArchetypeRule] = ARCHETYPE_RULES) -> ArchetypeRule:
    """Return the first matching rule. The table always ends with a default."""
    for rule in rules:
        if rule.matches(scores):
            return rule
    return ARCHETYPE_RULES[-1]


def classify_scores(scores: DimensionScores) -> Archetype:
    return match_rule(scores).archetype


def classify_archetype(answers: Iterable[Any]) -> Archetype:
    """Quiz answers -> Archetype. Pure; never raises for well-formed input."""
    return classify_scores(aggregate_traits(answers))
