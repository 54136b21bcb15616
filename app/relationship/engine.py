from dataclasses import dataclass

TRUST_GAIN_CAP = 2.0
TRUST_LOSS_CAP = -3.0


def clamp(x, a, b): return max(a, min(b, x))


@dataclass
class TurnContext:
    is_vulnerable: bool = False
    is_crisis: bool = False
    is_celebration: bool = False
    is_personal_share: bool = False
    is_hostile: bool = False


def diminishing_factor(current_trust: float) -> float:
    # trust builds slower the deeper the relationship already is
    if current_trust > 80:
        return 0.5
    if current_trust > 60:
        return 0.7
    if current_trust > 40:
        return 0.85
    return 1.0


def compute_trust_delta(
    emotional_intensity: float,
    ctx: TurnContext,
    current_trust: float,
    response_quality: float = 0.5,
) -> float:
    """
    Trust change for one exchange, in trust points.

    Positive changes are capped at +2 per turn and shrink at higher trust;
    hostile turns lose trust, scaled by intensity, down to -3.
    """
    intensity = clamp(float(emotional_intensity or 0.0), 0.0, 10.0)

    if ctx.is_hostile:
        return round(clamp(-(1.0 + 0.2 * intensity), TRUST_LOSS_CAP, 0.0), 3)

    change = 0.1 + clamp(response_quality, 0.0, 1.0) * 0.4

    if intensity > 7:
        change += 0.3
    elif intensity > 5:
        change += 0.2

    if ctx.is_vulnerable: change += 0.5
    if ctx.is_crisis: change += 0.4
    if ctx.is_celebration: change += 0.3
    if ctx.is_personal_share: change += 0.2

    change *= diminishing_factor(current_trust)
    return round(clamp(change, TRUST_LOSS_CAP, TRUST_GAIN_CAP), 3)
