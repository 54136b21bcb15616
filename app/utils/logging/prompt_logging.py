import re
import logging
from typing import Iterable, Sequence

from langchain_core.messages import BaseMessage


_EMAIL_RE = re.compile(r"[\w\.-]+@[\w\.-]+\.\w+")
_JWT_RE = re.compile(r"eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+")
_PHONE_RE = re.compile(r"\+?\d[\d\s().-]{7,}\d")


def _redact(text: str, extra_patterns: Iterable[re.Pattern[str]] | None = None) -> str:
    if not text:
        return text
    redacted = _EMAIL_RE.sub("<redacted_email>", text)
    redacted = _JWT_RE.sub("<redacted_token>", redacted)
    redacted = _PHONE_RE.sub("<redacted_phone>", redacted)
    if extra_patterns:
        for pat in extra_patterns:
            redacted = pat.sub("<redacted>", redacted)
    return redacted


def _truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    head = max_chars // 2
    tail = max_chars - head
    return f"{text[:head]}\n...<truncated>...\n{text[-tail:]}"


def render_messages(messages: Sequence[BaseMessage]) -> str:
    return "\n".join(f"[{m.type}] {m.content}" for m in messages)


def log_prompt(
    log: logging.Logger,
    messages: Sequence[BaseMessage],
    *,
    cid: str = "",
    max_chars: int = 8000,
    redact_patterns: Iterable[re.Pattern[str]] | None = None,
) -> None:
    """Companion prompt at DEBUG, with contact details and tokens masked."""
    if not log.isEnabledFor(logging.DEBUG):
        return
    rendered = _truncate(_redact(render_messages(messages), redact_patterns), max_chars)
    log.debug("[%s] ==== COMPANION PROMPT ====\n%s", cid, rendered)
