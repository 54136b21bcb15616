"""
Keyword/heuristic sentiment for a user message.

Produces the Sentiment consumed by significance scoring and the TurnContext
consumed by the trust engine. No model calls.
"""

import re
from dataclasses import dataclass, field
from typing import List

from app.memory.significance import BIOGRAPHICAL_PATTERNS, CRISIS_THRESHOLD, VULNERABILITY_PATTERNS, Sentiment
from app.relationship.engine import TurnContext

EMOTION_WORDS: dict[str, frozenset[str]] = {
    "joy": frozenset({"happy", "glad", "excited", "joy", "great", "awesome", "amazing", "wonderful",
                      "yay", "thrilled", "proud", "love it", "celebrate"}),
    "sadness": frozenset({"sad", "cry", "crying", "lonely", "miss", "hurt", "heartbroken", "depressed",
                          "down", "empty", "grief", "lost"}),
    "anger": frozenset({"angry", "mad", "furious", "hate", "annoyed", "frustrated", "pissed", "upset"}),
    "fear": frozenset({"scared", "afraid", "terrified", "fear", "frightened"}),
    "anxiety": frozenset({"anxious", "worried", "nervous", "stress", "stressed", "panic", "overwhelmed"}),
    "love": frozenset({"love", "adore", "care about", "cherish", "miss you"}),
}

INTENSIFIERS = frozenset({"very", "so", "really", "extremely", "incredibly", "totally", "completely", "absolutely"})

# (phrases, severity)
CRISIS_TIERS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("kill myself", "end my life", "suicide", "want to die", "better off dead", "no reason to live",
      "cut myself", "hurt myself", "self harm", "burning myself", "punish myself",
      "hurt someone", "kill someone", "being abused", "hitting me", "forced me", "cant escape",
      "can't escape", "chest pain", "cant breathe", "can't breathe", "overdose"), 8),
    (("hopeless", "worthless", "a burden", "give up", "cant go on", "can't go on", "no way out",
      "deserve pain", "numb inside", "lose control", "threatens me", "controls me", "scared of him",
      "scared of her", "severe pain", "bleeding", "fainted"), 5),
    (("depressed", "isolated", "dark thoughts", "cant cope", "can't cope", "breaking down"), 3),
)
IMMEDIATE_PHRASES = ("right now", "tonight", "going to", "about to")

HOSTILE_PATTERNS = [re.compile(p, re.I) for p in (
    r"\b(shut up|fuck (you|off)|i hate you|you('re| are) (stupid|useless|worthless|dumb|pathetic))\b",
    r"\b(go away|leave me alone|you suck)\b",
)]
CELEBRATION_PATTERNS = [re.compile(p, re.I) for p in (
    r"\b(i got (the job|promoted|accepted|engaged|married)|i passed|i won|we won|good news)\b",
    r"\b(celebrat(e|ing)|promotion|graduated|birthday)\b",
)]

_WORD_RE = re.compile(r"[a-z']+")


@dataclass
class TurnSignals:
    sentiment: Sentiment
    context: TurnContext
    crisis_keywords: List[str] = field(default_factory=list)


def _phrase_hits(text: str, phrases) -> List[str]:
    return [p for p in phrases if (" " in p and p in text) or (" " not in p and re.search(rf"\b{re.escape(p)}\b", text))]


def crisis_severity(text: str, intensity: float = 0.0) -> tuple[float, List[str]]:
    low = (text or "").lower()
    severity = 0
    found: List[str] = []
    for phrases, level in CRISIS_TIERS:
        hits = _phrase_hits(low, phrases)
        if hits:
            found.extend(hits)
            severity = max(severity, level)
    if severity and intensity > 8:
        severity = min(10, severity + 1)
    if severity >= CRISIS_THRESHOLD and any(p in low for p in IMMEDIATE_PHRASES):
        severity = min(10, severity + 2)
    return float(severity), found


def detect_sentiment(text: str) -> TurnSignals:
    low = (text or "").lower()
    words = _WORD_RE.findall(low)

    counts = {emo: len(_phrase_hits(low, vocab)) for emo, vocab in EMOTION_WORDS.items()}
    primary = max(counts, key=lambda e: counts[e]) if any(counts.values()) else "neutral"
    hits = sum(counts.values())

    intensity = 0.0
    if words:
        intensity += min(6.0, hits * 2.0)
        intensity += min(2.0, sum(1 for w in words if w in INTENSIFIERS) * 0.5)
        intensity += min(1.0, (text or "").count("!") * 0.5)
        caps = [w for w in (text or "").split() if len(w) > 2 and w.isupper()]
        intensity += min(1.0, len(caps) * 0.5)
    intensity = min(10.0, intensity)

    severity, crisis_words = crisis_severity(text, intensity)
    if severity >= CRISIS_THRESHOLD:
        intensity = max(intensity, 7.0)
        if primary in ("neutral", "joy"):
            primary = "sadness"

    sentiment = Sentiment(primary_emotion=primary, emotional_intensity=round(intensity, 2), crisis_severity=severity)
    ctx = TurnContext(
        is_vulnerable=any(p.search(text or "") for p in VULNERABILITY_PATTERNS),
        is_crisis=sentiment.is_crisis,
        is_celebration=any(p.search(text or "") for p in CELEBRATION_PATTERNS),
        is_personal_share=any(p.search(text or "") for p in BIOGRAPHICAL_PATTERNS),
        is_hostile=any(p.search(text or "") for p in HOSTILE_PATTERNS),
    )
    return TurnSignals(
        sentiment=sentiment,
        context=ctx,
        crisis_keywords=crisis_words,
    )
