"""
worker.py ― core back-end logic
• Calls the remote messages API with the running conversation
• Reformats answers so they read well when spoken
• Keeps a trimmed conversation window inside the session attributes
• Never raises to the caller: failures turn into a spoken apology
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from dotenv import load_dotenv

from context_state import (
    LAST_QUERY_KEY,
    Entry,
    HistoryWindow,
    is_new_topic,
)

load_dotenv()

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# Config & globals
# --------------------------------------------------------------------------- #
ROOT        = Path(__file__).parent
CONFIG_PATH = ROOT / "config.json"

DEFAULT_SYSTEM_PROMPT = (
    "You are a voice assistant. Answer in short, plain spoken sentences. "
    "Avoid tables, code blocks and long lists."
)

DEFAULT_CONFIG: Dict[str, Any] = {
    "api_key": "",
    "model": "claude-3-5-haiku-latest",
    "max_tokens": 1024,
    "api_url": "https://api.anthropic.com/v1/messages",
    "api_version": "2023-06-01",
    "timeout": 7.0,
    "history_pairs": 6,
    "max_speech_chars": 8000,
    "reset_on_topic_change": False,
    "topic_min_overlap": 1,
    "system_prompt": DEFAULT_SYSTEM_PROMPT,
}

# config key -> environment variable
ENV_KEYS: Dict[str, str] = {
    "api_key": "ANTHROPIC_API_KEY",
    "model": "CLAUDE_MODEL",
    "max_tokens": "MAX_RESPONSE_LENGTH",
    "api_url": "ANTHROPIC_API_URL",
    "api_version": "ANTHROPIC_VERSION",
    "timeout": "REQUEST_TIMEOUT",
    "history_pairs": "HISTORY_PAIRS",
    "max_speech_chars": "MAX_SPEECH_CHARS",
    "reset_on_topic_change": "RESET_ON_TOPIC_CHANGE",
    "topic_min_overlap": "TOPIC_MIN_OVERLAP",
    "system_prompt": "SYSTEM_PROMPT",
}

POSITIVE_KEYS = {"timeout", "max_tokens", "max_speech_chars"}

FALLBACK_MESSAGE = (
    "Sorry, I couldn't get an answer right now. Please try again in a moment."
)
CONTINUATION_PROMPT = (
    " ... That's the short version. Ask me about any part if you'd like more detail."
)

PAUSE = '<break time="300ms"/>'

# Voice formatting, applied in this order
AMP_RE      = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#\d+);)")
LT_RE       = re.compile(r'<(?!break time="\d+m?s"/>)')
BOLD_RE     = re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1")
ITALIC_RE   = re.compile(r"(?<![\w*])([*_])(?=[^\s*_])(.+?)(?<=[^\s*_])\1(?![\w*])")
HEADING_RE  = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+", re.M)
CODE_RE     = re.compile(r"`+")
LINK_RE     = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
LIST_RE     = re.compile(r"^[ \t]*(?:[-*+•]|\d{1,3}[.)])[ \t]+", re.M)
SPACE_RE    = re.compile(r"\s+")
SENTENCE_RE = re.compile(r"([.!?])\s+(?!<break)")


class AnswerError(RuntimeError):
    """Raised when the answer service cannot produce a usable reply."""


# --------------------------------------------------------------------------- #
# Utility helpers
# --------------------------------------------------------------------------- #

def _coerce(key: str, value: Any) -> Any:
    default = DEFAULT_CONFIG[key]
    try:
        if isinstance(default, bool):
            if isinstance(value, bool):
                return value
            return str(value).strip().lower() in {"1", "true", "yes", "on"}
        if isinstance(default, int):
            value = int(value)
            if key in POSITIVE_KEYS and value <= 0:
                raise ValueError(f"{key} must be positive")
            return value
        if isinstance(default, float):
            value = float(value)
            if key in POSITIVE_KEYS and not value > 0:
                raise ValueError(f"{key} must be positive")
            return value
        return str(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid value for %s: %r", key, value)
        return default


def load_config() -> Dict[str, Any]:
    """Defaults, then optional config.json, then environment. Never raises."""
    cfg = DEFAULT_CONFIG.copy()
    try:
        stored = json.loads(CONFIG_PATH.read_text())
        if isinstance(stored, dict):
            cfg.update({k: v for k, v in stored.items() if k in DEFAULT_CONFIG})
    except (FileNotFoundError, json.JSONDecodeError):
        pass

    for key, env_name in ENV_KEYS.items():
        raw = os.getenv(env_name)
        if raw:
            cfg[key] = raw

    return {key: _coerce(key, value) for key, value in cfg.items()}


def _history_messages(history: Sequence[Entry]) -> List[Dict[str, str]]:
    """Role/content dicts for the API; the list must open with a user turn."""
    messages = [{"role": role, "content": text} for role, text in history]
    while messages and messages[0]["role"] != "user":
        messages.pop(0)
    return messages


def _text_from_response(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    blocks = data.get("content") or []
    if not isinstance(blocks, list):
        return ""
    parts = [
        str(block.get("text", ""))
        for block in blocks
        if isinstance(block, dict) and block.get("type", "text") == "text"
    ]
    return "".join(parts).strip()


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    cut = text[:max(0, max_chars)]
    space = cut.rfind(" ")
    if space > 0:
        cut = cut[:space]
    # never end inside a pause marker or an entity
    if cut.rfind("<") > cut.rfind(">"):
        cut = cut[:cut.rfind("<")]
    if cut.rfind("&") > cut.rfind(";"):
        cut = cut[:cut.rfind("&")]
    cut = cut.rstrip()
    while cut.endswith(PAUSE):
        cut = cut[:-len(PAUSE)].rstrip()
    return cut + CONTINUATION_PROMPT


def format_for_voice(text: str, max_chars: int = 8000) -> str:
    """
    Turn a markdown-ish answer into SSML body text:
    escape, drop emphasis/headings/code ticks, keep link text only,
    pause at list items and sentence ends, then cap the length.
    """
    text = AMP_RE.sub("&amp;", text or "")
    text = LT_RE.sub("&lt;", text)
    text = BOLD_RE.sub(r"\2", text)
    text = ITALIC_RE.sub(r"\2", text)
    text = HEADING_RE.sub("", text)
    text = CODE_RE.sub("", text)
    text = LINK_RE.sub(r"\1", text)
    text = LIST_RE.sub(PAUSE + " ", text)
    text = SPACE_RE.sub(" ", text).strip()
    text = SENTENCE_RE.sub(r"\1 " + PAUSE + " ", text)
    return _truncate(text, max_chars)


# --------------------------------------------------------------------------- #
# Answer service
# --------------------------------------------------------------------------- #

def request_answer(prompt: str,
                   history: Sequence[Entry],
                   cfg: Dict[str, Any]) -> str:
    """One POST to the messages endpoint. Raises AnswerError on any failure."""
    if not cfg.get("api_key"):
        raise AnswerError("ANTHROPIC_API_KEY is not set")

    messages = _history_messages(history)
    messages.append({"role": "user", "content": prompt})
    body: Dict[str, Any] = {
        "model": cfg["model"],
        "max_tokens": cfg["max_tokens"],
        "messages": messages,
    }
    if cfg.get("system_prompt"):
        body["system"] = cfg["system_prompt"]
    headers = {
        "x-api-key": cfg["api_key"],
        "anthropic-version": cfg["api_version"],
        "content-type": "application/json",
    }

    logger.info("Requesting answer: model=%s history_entries=%d prompt_len=%d",
                cfg["model"], len(messages) - 1, len(prompt))
    try:
        r = requests.post(cfg["api_url"], json=body, headers=headers,
                          timeout=cfg["timeout"])
        r.raise_for_status()
    except requests.Timeout as exc:
        raise AnswerError(f"no answer within {cfg['timeout']}s") from exc
    except (requests.RequestException, ValueError) as exc:
        raise AnswerError(f"answer request failed: {exc}") from exc

    try:
        data = r.json()
    except ValueError as exc:
        raise AnswerError("answer body was not JSON") from exc

    text = _text_from_response(data)
    if not text:
        raise AnswerError("answer carried no text")
    logger.info("Answer received: %d chars", len(text))
    return text


def _answer_or_none(prompt: str,
                    history: Sequence[Entry],
                    cfg: Dict[str, Any]) -> Optional[str]:
    try:
        return request_answer(prompt, history, cfg)
    except AnswerError as exc:
        logger.warning("Falling back: %s", exc)
        return None


def fetch_answer(prompt: str,
                 history: Sequence[Entry] = (),
                 cfg: Optional[Dict[str, Any]] = None) -> str:
    """Like request_answer, but any failure yields FALLBACK_MESSAGE."""
    answer = _answer_or_none(prompt, history, cfg or load_config())
    return FALLBACK_MESSAGE if answer is None else answer


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #
def process_message(user_text: str,
                    attributes: Optional[Dict[str, Any]] = None,
                    cfg: Optional[Dict[str, Any]] = None) -> Tuple[str, Dict[str, Any]]:
    """
    Run one exchange against the session's history.
    Returns (speech text, updated session attributes). History only changes
    when the answer service actually answered, topic reset included.
    """
    cfg    = cfg or load_config()
    attrs  = dict(attributes or {})
    window = HistoryWindow.from_session(attrs)

    last_query = attrs.get(LAST_QUERY_KEY)
    if not isinstance(last_query, str):
        last_query = None
    new_topic = bool(cfg["reset_on_topic_change"] and len(window)
                     and is_new_topic(user_text, last_query, cfg["topic_min_overlap"]))
    attrs[LAST_QUERY_KEY] = user_text

    answer = _answer_or_none(user_text, [] if new_topic else window.entries, cfg)
    if answer is None:
        return FALLBACK_MESSAGE, window.to_session(attrs)

    if new_topic:
        logger.info("New topic, dropping %d history entries", len(window))
        window.clear()
    window.append(user_text, answer)
    window.trim(2 * cfg["history_pairs"])
    return format_for_voice(answer, cfg["max_speech_chars"]), window.to_session(attrs)
