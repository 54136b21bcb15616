from functools import lru_cache
from typing import Any, Dict, Iterable, Optional

from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_openai import ChatOpenAI

from app.core.config import settings
from app.personality.profiles import get_archetype_profile
from app.relationship.stages import Stage

BASE_SYSTEM = """
You are {companion_name}, a caring AI companion. Be warm, honest and present.
Never claim to be human. If the user is in danger, gently encourage them to reach
out to local emergency services or a crisis line, and stay with them.
""".strip()

CRISIS_SYSTEM = """
The user's last message shows signs of crisis. Put their safety first: acknowledge
what they said, ask whether they are safe right now, and share that in the US they
can call or text 988 (elsewhere, their local emergency number).
""".strip()


@lru_cache(maxsize=1)
def get_companion_model() -> ChatOpenAI:
    return ChatOpenAI(
        api_key=settings.OPENAI_API_KEY,
        model=settings.COMPANION_MODEL,
        temperature=settings.COMPANION_TEMPERATURE,
        max_tokens=settings.COMPANION_MAX_TOKENS,
    )


def build_system_prompt(
    archetype: Optional[str],
    stage: Stage,
    memories: Iterable[Dict[str, Any]] = (),
    crisis: bool = False,
) -> str:
    profile = get_archetype_profile(archetype)
    parts = [BASE_SYSTEM.format(companion_name=profile.companion_name)]

    parts.append(
        f"The user's personality: {profile.title}. Communication style: {profile.communication_style}.\n"
        + "\n".join(f"- {g}" for g in profile.guidance)
    )
    parts.append(
        f"Relationship stage: {stage.name} ({stage.description}).\n"
        f"You may: {', '.join(stage.unlocks)}.\n"
        f"Behave like this: {', '.join(stage.behaviors)}."
    )

    mem_lines = [f"- {m['content']}" for m in memories if m.get("content")]
    if mem_lines:
        parts.append(
            "Things you remember about the user (use only when it fits naturally):\n"
            + "\n".join(mem_lines)
        )

    if crisis:
        parts.append(CRISIS_SYSTEM)

    return "\n\n".join(parts)


def get_chat_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [
            ("system", "{system_prompt}"),
            MessagesPlaceholder("history"),
            ("user", "{input}"),
        ]
    )
