"""
Feature gate.

Access is a pure function of the user's subscription plan. Relationship trust
is deliberately not an input anywhere in this module.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import FeatureLocked, TransientStoreError
from app.services.subscription import PLANS, get_tier, plan_at_least

log = logging.getLogger("engagement-features")


@dataclass(frozen=True)
class Feature:
    id: str
    name: str
    description: str
    required_plan: str
    category: str  # messaging / memory / media / customization / advanced


@dataclass(frozen=True)
class AccessResult:
    allowed: bool
    feature: str
    plan: Optional[str] = None
    reason: Optional[str] = None
    required_plan: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "feature": self.feature,
            "plan": self.plan,
            "reason": self.reason,
            "required_plan": self.required_plan,
        }


def _f(id, name, description, required_plan, category) -> Feature:
    return Feature(id, name, description, required_plan, category)


FEATURES: Dict[str, Feature] = {f.id: f for f in (
    _f("unlimited_messages", "Unlimited Messages", "Send unlimited messages per day", "premium", "messaging"),
    _f("priority_responses", "Priority Responses", "Get faster response times", "premium", "messaging"),
    _f("extended_memory", "Extended Memory", "30-day memory retention", "basic", "memory"),
    _f("long_term_memory", "Long-term Memory", "6-month memory retention", "premium", "memory"),
    _f("permanent_memory", "Permanent Memory", "Never forget anything", "ultimate", "memory"),
    _f("voice_messages", "Voice Messages", "Send and receive voice messages", "basic", "media"),
    _f("photo_sharing", "Photo Sharing", "Share photos with your companion", "basic", "media"),
    _f("video_calls", "Video Calls", "Video chat with your AI companion", "ultimate", "media"),
    _f("basic_customization", "Basic Customization", "Customize companion name and avatar", "basic", "customization"),
    _f("advanced_customization", "Advanced Customization", "Full personality customization", "premium", "customization"),
    _f("custom_personality", "Custom AI Personality", "Create unique AI personality", "ultimate", "customization"),
    _f("relationship_insights", "Relationship Insights", "Deep analytics about your connection", "premium", "advanced"),
    _f("api_access", "API Access", "Programmatic access to your companion", "ultimate", "advanced"),
    _f("multi_personality", "Multiple Personalities", "Switch between different AI companions", "ultimate", "advanced"),
    _f("export_data", "Export Data", "Export conversations and memories", "premium", "advanced"),
)}


def features_for_plan(plan: str) -> frozenset[str]:
    """Feature flags of a tier: every feature whose required plan is at or below it."""
    return frozenset(fid for fid, f in FEATURES.items() if plan_at_least(plan, f.required_plan))


TIER_FEATURES: Dict[str, frozenset[str]] = {plan: features_for_plan(plan) for plan in PLANS}


def evaluate_feature(plan: str, feature_id: str) -> AccessResult:
    feature = FEATURES.get(feature_id)
    if feature is None:
        return AccessResult(False, feature_id, plan=plan, reason="unknown_feature")
    if feature_id in TIER_FEATURES.get(plan, frozenset()):
        return AccessResult(True, feature_id, plan=plan)
    return AccessResult(
        False,
        feature_id,
        plan=plan,
        reason=f"This feature requires {feature.required_plan} plan or higher",
        required_plan=feature.required_plan,
    )


async def check_feature(db: AsyncSession, user_id: str, feature_id: str) -> AccessResult:
    """
    Can this user use `feature_id` right now?

    The plan is read fresh for every call. Store failures deny access.
    """
    try:
        plan = await get_tier(db, user_id)
    except TransientStoreError:
        log.warning("[FEATURE] user=%s feature=%s denied: subscription store unavailable", user_id, feature_id)
        return AccessResult(False, feature_id, reason="store_unavailable")

    result = evaluate_feature(plan, feature_id)
    log.info("[FEATURE] user=%s plan=%s feature=%s allowed=%s", user_id, plan, feature_id, result.allowed)
    return result


async def require_feature(db: AsyncSession, user_id: str, feature_id: str) -> AccessResult:
    """check_feature, raising FeatureLocked (or TransientStoreError) on denial."""
    result = await check_feature(db, user_id, feature_id)
    if result.allowed:
        return result
    if result.reason == "store_unavailable":
        raise TransientStoreError("subscription store is temporarily unavailable")
    raise FeatureLocked(
        result.reason or "Feature not available on your plan",
        details={
            "feature": feature_id,
            "required_plan": result.required_plan,
            "current_plan": result.plan,
        },
    )


async def list_features(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    plan = await get_tier(db, user_id)
    available: List[Dict[str, Any]] = []
    locked: List[Dict[str, Any]] = []
    for f in FEATURES.values():
        entry = {
            "id": f.id,
            "name": f.name,
            "description": f.description,
            "category": f.category,
            "required_plan": f.required_plan,
        }
        access = evaluate_feature(plan, f.id)
        if access.allowed:
            available.append(entry)
        else:
            locked.append({**entry, "reason": access.reason})
    return {"plan": plan, "available": available, "locked": locked}
