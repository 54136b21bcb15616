import logging
from typing import Any, Dict, List, Mapping, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.personality.archetypes import classify_scores
from app.personality.profiles import get_archetype_profile
from app.personality.traits import aggregate_traits
from app.relationship.processor import check_milestones, record_trigger_event
from app.relationship.repo import update_profile

log = logging.getLogger("engagement-personality")

MAX_ANSWERS = 100
MAX_WEIGHT = 10


def validate_answers(answers: Any) -> List[Dict[str, Any]]:
    """
    Reject malformed quiz input before any scoring.

    Returns the answers normalized to ``[{"question_id": ..., "traits": {name: int}}]``.
    """
    if not isinstance(answers, Sequence) or isinstance(answers, (str, bytes)):
        raise ValidationError("answers must be a list")
    if not answers:
        raise ValidationError("at least one answer is required")
    if len(answers) > MAX_ANSWERS:
        raise ValidationError(f"too many answers (max {MAX_ANSWERS})")

    normalized: List[Dict[str, Any]] = []
    for i, ans in enumerate(answers):
        traits = ans.get("traits") if isinstance(ans, Mapping) else getattr(ans, "traits", None)
        if not isinstance(traits, Mapping):
            raise ValidationError("each answer needs a traits mapping", details={"index": i})

        clean: Dict[str, int] = {}
        for name, weight in traits.items():
            if not isinstance(name, str) or not name.strip():
                raise ValidationError("trait names must be non-empty strings", details={"index": i})
            if isinstance(weight, bool) or not isinstance(weight, int):
                raise ValidationError(
                    "trait weights must be integers",
                    details={"index": i, "trait": name},
                )
            if abs(weight) > MAX_WEIGHT:
                raise ValidationError(
                    f"trait weight out of range (|w| <= {MAX_WEIGHT})",
                    details={"index": i, "trait": name},
                )
            clean[name.strip().lower()] = weight

        qid = ans.get("question_id") if isinstance(ans, Mapping) else getattr(ans, "question_id", None)
        normalized.append({"question_id": qid, "traits": clean})

    return normalized


async def submit_quiz(db: AsyncSession, user_id: str, answers: Any) -> Dict[str, Any]:
    """
    Score a completed quiz and store the result on the profile.

    A retake recomputes everything from the new answers and replaces the old
    result.
    """
    normalized = validate_answers(answers)
    scores = aggregate_traits(normalized)
    archetype = classify_scores(scores)

    await update_profile(
        db,
        user_id,
        archetype=archetype.value,
        attachment_style=scores.attachment_style,
        dimension_scores=scores.as_dict(),
        quiz_answers=normalized,
    )
    await record_trigger_event(db, user_id, "personality_test_complete", f"Archetype: {archetype.value}")
    milestones = await check_milestones(db, user_id)

    log.info("[QUIZ %s] answers=%d archetype=%s attachment=%s",
             user_id, len(normalized), archetype.value, scores.attachment_style)

    profile = get_archetype_profile(archetype)
    return {
        "archetype": archetype.value,
        "title": profile.title,
        "companion_name": profile.companion_name,
        "attachment_style": scores.attachment_style,
        "dimensions": scores.as_dict(),
        "milestones_achieved": [m.id for m in milestones],
    }
