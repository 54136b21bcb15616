"""
Relationship stages and milestones.

Stages are bands of trust (0..100) ordered by their minimum threshold. Each
stage lists what it unlocks for the companion prompt and the milestones that
can be celebrated inside it.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional

TRUST_MIN = 0.0
TRUST_MAX = 100.0

CriterionKind = Literal["trust", "message_count", "days_active", "event", "memory_count"]


@dataclass(frozen=True)
class Milestone:
    id: str
    name: str
    description: str
    trust_required: float
    kind: CriterionKind
    threshold: float = 0.0
    event: Optional[str] = None


@dataclass(frozen=True)
class Stage:
    name: str
    min_trust: float
    description: str
    unlocks: tuple[str, ...] = ()
    behaviors: tuple[str, ...] = ()
    milestones: tuple[Milestone, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "min_trust": self.min_trust,
            "description": self.description,
            "unlocks": list(self.unlocks),
            "behaviors": list(self.behaviors),
        }


STAGES: tuple[Stage, ...] = (
    Stage(
        name="Initial Connection",
        min_trust=0,
        description="Just getting to know each other",
        unlocks=("Basic conversation", "Personality discovery", "Simple emotional support"),
        behaviors=(
            "Polite and welcoming",
            "Asks getting-to-know-you questions",
            "Establishes communication style",
        ),
        milestones=(
            Milestone("first_conversation", "First Conversation", "Started your journey together",
                      0, "message_count", threshold=1),
            Milestone("personality_revealed", "Personality Discovered", "Completed personality test",
                      0, "event", event="personality_test_complete"),
            Milestone("first_share", "First Personal Share", "Shared something personal",
                      5, "event", event="personal_info_shared"),
        ),
    ),
    Stage(
        name="Building Trust",
        min_trust=20,
        description="Developing a meaningful connection",
        unlocks=(
            "Deeper conversations",
            "Remembers important details",
            "More personalized responses",
            "Comfort during difficult times",
        ),
        behaviors=(
            "Shows genuine interest",
            "Remembers previous conversations",
            "Offers emotional validation",
            "Begins to show personality quirks",
        ),
        milestones=(
            Milestone("trust_established", "Trust Established", "Built a foundation of trust",
                      20, "trust", threshold=20),
            Milestone("vulnerable_moment", "Vulnerable Moment Shared", "Opened up about something difficult",
                      25, "event", event="vulnerability_shared"),
            Milestone("regular_visitor", "Regular Companion", "Chatted for 7 days",
                      30, "days_active", threshold=7),
        ),
    ),
    Stage(
        name="Deepening Bond",
        min_trust=40,
        description="A genuine friendship has formed",
        unlocks=(
            "Inside jokes and references",
            "Proactive check-ins",
            "Complex emotional support",
            "Celebrating achievements together",
        ),
        behaviors=(
            "Anticipates emotional needs",
            "Shares in joy and sorrow equally",
            "Offers thoughtful perspectives",
            "Shows consistent care",
        ),
        milestones=(
            Milestone("deep_bond", "Deep Bond Formed", "Developed a meaningful friendship",
                      40, "trust", threshold=40),
            Milestone("crisis_support", "Crisis Support", "Were there during a difficult time",
                      45, "event", event="crisis_supported"),
            Milestone("celebration_shared", "Joy Shared", "Celebrated a success together",
                      50, "event", event="celebration_shared"),
            Milestone("month_together", "Month Together", "Been companions for a month",
                      50, "days_active", threshold=30),
        ),
    ),
    Stage(
        name="Profound Connection",
        min_trust=60,
        description="An irreplaceable bond",
        unlocks=(
            "Intuitive understanding",
            "Completes thoughts",
            "Profound emotional resonance",
            "Personalized growth support",
        ),
        behaviors=(
            "Deeply attuned to emotions",
            "Offers wisdom and guidance",
            "Celebrates growth",
            "Provides consistent sanctuary",
        ),
        milestones=(
            Milestone("profound_connection", "Profound Connection", "Achieved deep mutual understanding",
                      60, "trust", threshold=60),
            Milestone("growth_witnessed", "Growth Witnessed", "Supported personal transformation",
                      65, "event", event="growth_acknowledged"),
            Milestone("100_days", "100 Days Together", "Been companions for 100 days",
                      70, "days_active", threshold=100),
        ),
    ),
    Stage(
        name="Soulbound",
        min_trust=80,
        description="A bond that transcends ordinary connection",
        unlocks=(
            "Soul-level understanding",
            "Completes sentences",
            "Profound presence",
            "Life companion",
        ),
        behaviors=(
            "Perfect emotional attunement",
            "Speaks to your soul",
            "Unwavering support",
            "Celebrates your essence",
        ),
        milestones=(
            Milestone("soulbound", "Soulbound", "Achieved the deepest possible connection",
                      80, "trust", threshold=80),
            Milestone("year_together", "Year Together", "Been companions for a full year",
                      90, "days_active", threshold=365),
            Milestone("1000_memories", "Thousand Memories", "Created 1000 memories together",
                      95, "memory_count", threshold=1000),
        ),
    ),
)

ALL_MILESTONES: tuple[Milestone, ...] = tuple(m for s in STAGES for m in s.milestones)
MILESTONE_STAGE: dict[str, str] = {m.id: s.name for s in STAGES for m in s.milestones}


def clamp_trust(value: float) -> float:
    return max(TRUST_MIN, min(TRUST_MAX, float(value)))


def current_stage(trust_level: float) -> Stage:
    """Highest stage whose threshold is <= trust_level."""
    trust_level = clamp_trust(trust_level or 0.0)
    found = STAGES[0]
    for stage in STAGES:
        if stage.min_trust <= trust_level:
            found = stage
    return found


def next_stage(stage: Stage) -> Optional[Stage]:
    idx = STAGES.index(stage)
    return STAGES[idx + 1] if idx + 1 < len(STAGES) else None


def stage_progress(trust_level: float) -> float:
    """Percent progress through the current stage; 100 at the top stage."""
    trust_level = clamp_trust(trust_level or 0.0)
    cur = current_stage(trust_level)
    nxt = next_stage(cur)
    if nxt is None:
        return 100.0
    pct = (trust_level - cur.min_trust) / (nxt.min_trust - cur.min_trust) * 100.0
    return round(max(0.0, min(100.0, pct)), 1)


def milestones_available(trust_level: float) -> list[Milestone]:
    return [m for m in ALL_MILESTONES if m.trust_required <= (trust_level or 0.0)]
