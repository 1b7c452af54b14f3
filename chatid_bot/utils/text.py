from __future__ import annotations

import re
from typing import Iterable

_command_re = re.compile(r"^/([A-Za-z0-9_]+)(?:@\w+)?")

CHAT_TYPE_LABELS: dict[str, str] = {
    "private": "личный чат",
    "group": "группа",
    "supergroup": "супергруппа",
    "channel": "канал",
}

_CHAT_TYPE_ORDER = ("private", "group", "supergroup", "channel")


def extract_command(text: str | None) -> str | None:
    """
    Returns the command token of a message text, lowercased:
    - "/chatid@mybot extra" -> "chatid"
    - "hello" / "" / None -> None
    """
    if not text or not text.startswith("/"):
        return None
    match = _command_re.match(text)
    return match.group(1).lower() if match else None


def norm_command(value: str) -> str:
    return (value or "").strip().lower().removeprefix("/")


def chat_type_label(chat_type: str | None) -> str:
    if not chat_type:
        return "неизвестный"
    label = CHAT_TYPE_LABELS.get(chat_type)
    return f"{label} ({chat_type})" if label else chat_type


def format_chat_types(chat_types: Iterable[str | None]) -> str:
    ordered = sorted(
        set(chat_types),
        key=lambda t: _CHAT_TYPE_ORDER.index(t) if t in _CHAT_TYPE_ORDER else len(_CHAT_TYPE_ORDER),
    )
    return ", ".join(chat_type_label(t) for t in ordered)
