"""
Trait Aggregator: ordered quiz answers -> DimensionScores.

Every quiz option carries a mapping of trait name -> signed weight. Each trait
name is statically bound to an axis and a sign; the axis score is the raw sum
of the signed weights. There is no normalization by answer count because the
archetype rules use absolute thresholds calibrated against raw sums.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Literal, Mapping

AttachmentStyle = Literal["secure", "anxious", "avoidant"]

AXES = (
    "introversion_extraversion",   # + extraversion
    "thinking_feeling",            # + feeling
    "intuitive_sensing",           # + intuitive
    "judging_perceiving",          # + judging
    "stable_neurotic",             # + stable
    "secure_insecure",             # + secure
    "independent_dependent",       # + dependent
)

SCALARS = (
    "emotional_depth",
    "communication_openness",
    "intimacy_comfort",
    "support_needs",
    "fantasy_preference",
)

# trait name -> ((axis, sign), ...)
# Attachment traits touch two axes: they are read by the attachment
# rule through both secure_insecure and independent_dependent.
TRAIT_AXES: dict[str, tuple[tuple[str, int], ...]] = {
    # introversion <-> extraversion
    "introversion": (("introversion_extraversion", -1),),
    "reserved": (("introversion_extraversion", -1),),
    "extraversion": (("introversion_extraversion", 1),),
    "outgoing": (("introversion_extraversion", 1),),
    "social": (("introversion_extraversion", 1),),
    # thinking <-> feeling
    "thinking": (("thinking_feeling", -1),),
    "analytical": (("thinking_feeling", -1),),
    "logical": (("thinking_feeling", -1),),
    "feeling": (("thinking_feeling", 1),),
    "empathetic": (("thinking_feeling", 1),),
    # intuitive <-> sensing
    "intuitive": (("intuitive_sensing", 1),),
    "abstract": (("intuitive_sensing", 1),),
    "imaginative": (("intuitive_sensing", 1),),
    "sensing": (("intuitive_sensing", -1),),
    "practical": (("intuitive_sensing", -1),),
    "concrete": (("intuitive_sensing", -1),),
    # judging <-> perceiving
    "judging": (("judging_perceiving", 1),),
    "structured": (("judging_perceiving", 1),),
    "planned": (("judging_perceiving", 1),),
    "perceiving": (("judging_perceiving", -1),),
    "flexible": (("judging_perceiving", -1),),
    "spontaneous": (("judging_perceiving", -1),),
    # stable <-> neurotic
    "stable": (("stable_neurotic", 1),),
    "calm": (("stable_neurotic", 1),),
    "neurotic": (("stable_neurotic", -1),),
    "volatile": (("stable_neurotic", -1),),
    # secure <-> insecure
    "secure": (("secure_insecure", 1),),
    "confident": (("secure_insecure", 1),),
    "balanced": (("secure_insecure", 1),),
    "insecure": (("secure_insecure", -1), ("independent_dependent", 1)),
    "fearful": (("secure_insecure", -1), ("independent_dependent", 1)),
    # independent <-> dependent
    "independent": (("independent_dependent", -1),),
    "autonomous": (("independent_dependent", -1),),
    "self_sufficient": (("independent_dependent", -1),),
    "dependent": (("independent_dependent", 1),),
    "reassurance": (("independent_dependent", 1),),
    "validation_seeking": (("independent_dependent", 1),),
    # attachment
    "anxious": (("secure_insecure", -1), ("independent_dependent", 1)),
    "avoidant": (("secure_insecure", -1), ("independent_dependent", -1)),
    # derived scalars
    "emotional": (("emotional_depth", 1),),
    "deep": (("emotional_depth", 1),),
    "intense": (("emotional_depth", 1),),
    "expressive": (("communication_openness", 1),),
    "open": (("communication_openness", 1),),
    "direct": (("communication_openness", 1),),
    "affectionate": (("intimacy_comfort", 1),),
    "intimate": (("intimacy_comfort", 1),),
    "physical_touch": (("intimacy_comfort", 1),),
    "support_seeking": (("support_needs", 1),),
    "understanding": (("support_needs", 1),),
    "fantasy": (("fantasy_preference", 1),),
    "romantic": (("fantasy_preference", 1),),
    "playful": (("fantasy_preference", 1),),
    "adventurous": (("fantasy_preference", 1),),
}

INSECURE_THRESHOLD = -2.0    # secure_insecure at or below this is insecure
DEPENDENCE_THRESHOLD = 1.0   # |independent_dependent| needed to lean one way


@dataclass(frozen=True)
class TraitAnswer:
    """One submitted quiz answer. Immutable once submitted."""
    traits: Mapping[str, int]
    question_id: int | None = None


@dataclass(frozen=True)
class DimensionScores:
    introversion_extraversion: float = 0.0
    thinking_feeling: float = 0.0
    intuitive_sensing: float = 0.0
    judging_perceiving: float = 0.0
    stable_neurotic: float = 0.0
    secure_insecure: float = 0.0
    independent_dependent: float = 0.0

    emotional_depth: float = 0.0
    communication_openness: float = 0.0
    intimacy_comfort: float = 0.0
    support_needs: float = 0.0
    fantasy_preference: float = 0.0

    attachment_style: AttachmentStyle = "secure"

    def get(self, name: str, default: Any = 0.0) -> Any:
        return getattr(self, name, default)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "DimensionScores":
        data = data or {}
        values: dict[str, Any] = {}
        for name in AXES + SCALARS:
            values[name] = _as_weight(data.get(name, 0.0))
        style = data.get("attachment_style")
        values["attachment_style"] = style if style in ("secure", "anxious", "avoidant") else "secure"
        return cls(**values)


def _as_weight(value: Any) -> float:
    """Malformed weights count as zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return float(value)


def derive_attachment_style(secure_insecure: float, independent_dependent: float) -> AttachmentStyle:
    if secure_insecure > INSECURE_THRESHOLD:
        return "secure"
    if independent_dependent >= DEPENDENCE_THRESHOLD:
        return "anxious"
    if independent_dependent <= -DEPENDENCE_THRESHOLD:
        return "avoidant"
    return "secure"


def aggregate_traits(answers: Iterable[Any]) -> DimensionScores:
    """
    Sum each answer's trait weights onto their axes.

    Pure and total: zero answers give all-zero scores with a secure attachment
    style, and unknown trait names or malformed weights contribute nothing.
    """
    totals: dict[str, float] = {name: 0.0 for name in AXES + SCALARS}

    for answer in answers or ():
        traits = answer.get("traits") if isinstance(answer, Mapping) else getattr(answer, "traits", None)
        if not isinstance(traits, Mapping):
            continue
        for trait, weight in traits.items():
            contributions = TRAIT_AXES.get(str(trait).strip().lower())
            if not contributions:
                continue
            w = _as_weight(weight)
            for axis, sign in contributions:
                totals[axis] += sign * w

    style = derive_attachment_style(totals["secure_insecure"], totals["independent_dependent"])
    return DimensionScores(**totals, attachment_style=style)
