# context_state.py – conversation window carried in session attributes
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

Entry = Tuple[str, str]                 # (role, text), role is "user" or "assistant"
ROLES = ("user", "assistant")

HISTORY_KEY    = "history"
LAST_QUERY_KEY = "last_query"

WORD_RE = re.compile(r"[a-z0-9']+")

STOP_WORDS = frozenset("""
a an the and or but if of to in on at by for with from about as into is are was
were be been being do does did what which who whom whose when where why how can
could would should will shall may might must i me my you your we our they them
their he she his her its this these those there here tell explain please give
show know
""".split())

# Any of these in a query means it leans on the previous answer.
FOLLOW_UP_WORDS = frozenset("""
it its that this those them they he she more else again also another continue
""".split())


class HistoryWindow:
    def __init__(self, entries: Optional[List[Entry]] = None):
        self._entries: List[Entry] = list(entries or [])

    @property
    def entries(self) -> List[Entry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, user_text: str, assistant_text: str) -> None:
        self._entries.append(("user", user_text))
        self._entries.append(("assistant", assistant_text))

    def trim(self, max_entries: int) -> None:
        """Drop the oldest entries until at most *max_entries* remain."""
        excess = len(self._entries) - max(0, max_entries)
        if excess > 0:
            del self._entries[:excess]

    def clear(self) -> None:
        self._entries.clear()

    def as_messages(self) -> List[Dict[str, str]]:
        return [{"role": role, "content": text} for role, text in self._entries]

    @classmethod
    def from_session(cls, attributes: Optional[Dict[str, Any]]) -> "HistoryWindow":
        """Rebuild the window from session attributes, skipping malformed items."""
        raw = (attributes or {}).get(HISTORY_KEY) or []
        entries: List[Entry] = []
        if isinstance(raw, list):
            for item in raw:
                if not isinstance(item, dict):
                    continue
                role, content = item.get("role"), item.get("content")
                if role in ROLES and isinstance(content, str):
                    entries.append((role, content))
        return cls(entries)

    def to_session(self, attributes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        out = dict(attributes or {})
        out[HISTORY_KEY] = self.as_messages()
        return out


def content_words(text: Any) -> set:
    if not isinstance(text, str):
        return set()
    return {w for w in WORD_RE.findall(text.lower()) if w not in STOP_WORDS}


def is_new_topic(query: str, last_query: Optional[str], min_overlap: int = 1) -> bool:
    """
    Crude topic-change check on word overlap with the previous query.
    Overlap equal to *min_overlap* counts as the same topic.
    """
    if not isinstance(last_query, str) or not last_query:
        return False
    words = set(WORD_RE.findall(query.lower())) if isinstance(query, str) else set()
    if words & FOLLOW_UP_WORDS:
        return False
    current, previous = content_words(query), content_words(last_query)
    if not current or not previous:
        return False
    return len(current & previous) < min_overlap
