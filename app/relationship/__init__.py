"""
Relationship progression for a user and their companion.

This module tracks:
- Trust level (0..100), changed only through `apply_trust_delta`
- Stages (Initial Connection -> Building Trust -> Deepening Bond -> Profound Connection -> Soulbound)
- Milestones: available once trust reaches them, achieved once recorded in the progression log
- The append-only progression log

Main entry points are `apply_trust_delta` and `get_stage_info` in processor.py.
"""

from .processor import apply_trust_delta, check_milestones, get_stage_info, record_trigger_event, TrustUpdate
from .repo import get_or_create_profile, update_profile, append_event, list_events
from .engine import TurnContext, compute_trust_delta
from .stages import STAGES, Stage, Milestone, current_stage, next_stage, stage_progress

__all__ = [
    # Main functions
    "apply_trust_delta",
    "check_milestones",
    "get_stage_info",
    "record_trigger_event",
    "TrustUpdate",

    # Stores
    "get_or_create_profile",
    "update_profile",
    "append_event",
    "list_events",

    # Core engine
    "TurnContext",
    "compute_trust_delta",
    "STAGES",
    "Stage",
    "Milestone",
    "current_stage",
    "next_stage",
    "stage_progress",
]
