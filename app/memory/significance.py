"""
Memory Significance Engine.

Scores one conversational exchange on a 0..10 scale, classifies it as an
episodic or semantic memory, picks a category and keywords, and assigns an
expiry from the user's plan. Everything here is pure: malformed numeric input
counts as zero and nothing raises for well-formed text.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from app.memory.keywords import categorize, extract_keywords, tokenize
from app.memory.retention import compute_expiry, should_store, PERMANENT_SCORE

SCORE_MAX = 10.0

INTENSITY_WEIGHT = 0.3
INTENSITY_CAP = 3.0
CRISIS_THRESHOLD = 5.0
CRISIS_BONUS = 8.0
MEMORY_REQUEST_BONUS = 2.0
BIOGRAPHICAL_WEIGHT = 0.5
BIOGRAPHICAL_CAP = 2.0
VULNERABILITY_WEIGHT = 1.0
VULNERABILITY_CAP = 2.0
NOVELTY_BONUS = 0.5
NOVELTY_WINDOW = 10
EARLY_TRUST = 30.0
EARLY_BONUS = 0.5
EARLY_MIN_SCORE = 5.0

MEMORY_REQUEST_RE = re.compile(
    r"\b(remember (this|that|when)|don'?t forget|never forget|keep in mind)\b", re.I
)

BIOGRAPHICAL_PATTERNS = [re.compile(p, re.I) for p in (
    r"\bmy name is\b|\bcall me\b",
    r"\bmy (birthday|age|job|work|career|major)\b|\bi'?m \d{1,2} (years old|yo)\b",
    r"\bi (live|work|study|grew up) (in|at|for)\b",
    r"\bi('?m| am) an? [a-z]+ (at|for|in)\b|\bi work as\b",
    r"\bmy (family|mother|mom|father|dad|sister|brother|partner|spouse|wife|husband|son|daughter)\b",
    r"\b(died|passed away|broke up|divorced|married|engaged|graduated|moved)\b",
    r"\bmy favou?rite\b",
    r"\bborn (in|on)\b|\bon (january|february|march|april|may|june|july|august|september|october|november|december) \d{1,2}\b",
)]

VULNERABILITY_PATTERNS = [re.compile(p, re.I) for p in (
    r"\bi'?ve never told anyone\b|\bnever told (anyone|anybody)\b",
    r"\bi trust you\b",
    r"\bi feel safe with you\b",
    r"\byou mean (a lot|so much|everything)( to me)?\b",
    r"\bi (love|care about) you\b",
    r"\byou('ve| have) helped me\b",
    r"\bthe first time i\b|\bi'?m ashamed\b|\bhard (for me )?to (say|admit)\b",
)]

EPISODIC_PATTERNS = [re.compile(p, re.I) for p in (
    r"\b(yesterday|last (night|week|month|year|weekend)|this (morning|afternoon|evening)|tonight)\b",
    r"\bon (monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
    r"\b(january|february|march|april|may|june|july|august|september|october|november|december) \d{1,2}\b",
    r"\b(in|since) (19|20)\d{2}\b|\b\d{1,2}/\d{1,2}(/\d{2,4})?\b",
    r"\bwhen i was\b|\bthe day (i|we|my)\b|\bthe first time\b",
    r"\bi (went|got|had|met|saw|lost|won|moved|graduated|visited|told|found)\b",
    r"\b(it )?happened\b|\b(\d+|a|two|three) (days|weeks|months|years) ago\b",
)]


@dataclass(frozen=True)
class Sentiment:
    primary_emotion: str = "neutral"
    emotional_intensity: float = 0.0   # 0..10
    crisis_severity: float = 0.0       # 0..10

    @property
    def is_crisis(self) -> bool:
        return _num(self.crisis_severity) >= CRISIS_THRESHOLD


@dataclass(frozen=True)
class Exchange:
    user_message: str
    companion_response: str = ""
    sentiment: Sentiment = field(default_factory=Sentiment)
    recent_history_length: int = 0
    trust_level: float = 0.0
    message_count: int = 0
    plan: str = "free"


@dataclass(frozen=True)
class Significance:
    score: float
    type: str                  # episodic / semantic
    category: str
    keywords: List[str]
    reasons: List[str]
    expires_at: Optional[datetime]

    @property
    def should_store(self) -> bool:
        return should_store(self.score)

    @property
    def permanent(self) -> bool:
        return self.expires_at is None


def _num(value: Any, lo: float = 0.0, hi: float = 10.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0.0
    return max(lo, min(hi, float(value)))


def _count(patterns, text: str) -> int:
    return sum(1 for p in patterns if p.search(text))


def classify_type(text: str) -> str:
    return "episodic" if any(p.search(text or "") for p in EPISODIC_PATTERNS) else "semantic"


def score_turn(exchange: Exchange, now: Optional[datetime] = None) -> Significance:
    text = exchange.user_message or ""
    s = exchange.sentiment or Sentiment()
    score = 0.0
    reasons: List[str] = []

    intensity = _num(s.emotional_intensity)
    emo = min(INTENSITY_CAP, intensity * INTENSITY_WEIGHT)
    score += emo
    if emo > 2:
        reasons.append("High emotional intensity")

    if s.is_crisis:
        score += CRISIS_BONUS
        reasons.append("Crisis moment - requires remembering")

    if MEMORY_REQUEST_RE.search(text):
        score += MEMORY_REQUEST_BONUS
        reasons.append("User requested to remember")

    bio = min(BIOGRAPHICAL_CAP, _count(BIOGRAPHICAL_PATTERNS, text) * BIOGRAPHICAL_WEIGHT)
    if bio > 0:
        score += bio
        reasons.append("Contains personal information")

    vuln = min(VULNERABILITY_CAP, _count(VULNERABILITY_PATTERNS, text) * VULNERABILITY_WEIGHT)
    if vuln > 0:
        score += vuln
        reasons.append("Vulnerability or trust declaration")

    history = int(_num(exchange.recent_history_length, hi=float(NOVELTY_WINDOW)))
    if history < NOVELTY_WINDOW:
        score += NOVELTY_BONUS * (NOVELTY_WINDOW - history) / NOVELTY_WINDOW
        if history == 0:
            reasons.append("Early in the conversation")

    if _num(exchange.trust_level, hi=100.0) < EARLY_TRUST and score > EARLY_MIN_SCORE:
        score += EARLY_BONUS
        reasons.append("Early relationship - building foundation")

    score = round(max(0.0, min(SCORE_MAX, score)), 2)
    if score >= PERMANENT_SCORE:
        reasons.append("Pivotal moment - kept permanently")

    tokens = tokenize(text)
    now = now or datetime.now(timezone.utc)
    return Significance(
        score=score,
        type=classify_type(text),
        category=categorize(tokens),
        keywords=extract_keywords(text),
        reasons=reasons,
        expires_at=compute_expiry(score, exchange.plan, now),
    )
