"""
Long-term memory for companion conversations.

- significance: score a turn (0..10), classify it, pick category/keywords, set expiry
- keywords: tokenizer, stopwords and the keyword -> category table
- retention: creation threshold, permanence threshold, plan retention windows
- repo: memory store (create, list expired, delete, stats, recall with decay)
- sweep: periodic deletion of expired memories
"""

from .significance import Exchange, Sentiment, Significance, score_turn
from .retention import compute_expiry, should_store

__all__ = [
    "Exchange",
    "Sentiment",
    "Significance",
    "score_turn",
    "compute_expiry",
    "should_store",
]
