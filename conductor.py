"""
conductor.py
Central dispatcher that routes an incoming skill request to one handler.

A request envelope is a dict like:
    { "request": { "type": "IntentRequest",
                   "intent": { "name": "AskIntent",
                               "slots": { "query": { "value": "..." } } } },
      "session": { "attributes": { ... } } }

Each handler lives in handlers/<name>.py and must implement:

    def can_handle(envelope: dict) -> bool
    def run(envelope: dict) -> dict    # returns a response envelope
"""
from __future__ import annotations

import logging
from importlib import import_module
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Checked in order; predicates are mutually exclusive, fallback last.
HANDLERS = ("launch", "ask", "help", "stop", "session_ended", "fallback")

APOLOGY = "Sorry, I didn't catch that. You can ask me a question, or say help."
APOLOGY_REPROMPT = "What would you like to know?"


class DispatchError(RuntimeError):
    """Raised on any handler-loading failure."""


# --------------------------------------------------------------------------- #
# Envelope helpers
# --------------------------------------------------------------------------- #

def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def request_type(envelope: Any) -> str:
    return str(_as_dict(_as_dict(envelope).get("request")).get("type") or "")


def intent_name(envelope: Any) -> str:
    req = _as_dict(_as_dict(envelope).get("request"))
    return str(_as_dict(req.get("intent")).get("name") or "")


def slot_value(envelope: Any, name: str) -> str:
    req = _as_dict(_as_dict(envelope).get("request"))
    slots = _as_dict(_as_dict(req.get("intent")).get("slots"))
    value = _as_dict(slots.get(name)).get("value")
    return value.strip() if isinstance(value, str) else ""


def session_attributes(envelope: Any) -> Dict[str, Any]:
    session = _as_dict(_as_dict(envelope).get("session"))
    return dict(_as_dict(session.get("attributes")))


def build_response(speech: str,
                   reprompt: Optional[str] = None,
                   end_session: bool = False,
                   attributes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "outputSpeech": {"type": "SSML", "ssml": f"<speak>{speech}</speak>"},
        "shouldEndSession": end_session,
    }
    if reprompt and not end_session:
        response["reprompt"] = {
            "outputSpeech": {"type": "SSML", "ssml": f"<speak>{reprompt}</speak>"}
        }
    return {
        "version": "1.0",
        "sessionAttributes": dict(attributes or {}),
        "response": response,
    }


def empty_response() -> Dict[str, Any]:
    return {"version": "1.0", "response": {}}


def apology(envelope: Any) -> Dict[str, Any]:
    return build_response(APOLOGY, reprompt=APOLOGY_REPROMPT,
                          attributes=session_attributes(envelope))


# --------------------------------------------------------------------------- #
# Dispatch
# --------------------------------------------------------------------------- #

def _load_handler_module(name: str):
    try:
        mod = import_module(f"handlers.{name}")
    except ModuleNotFoundError:
        raise DispatchError(f"No such handler: {name}")
    if not hasattr(mod, "can_handle") or not hasattr(mod, "run"):
        raise DispatchError(f"Handler {name} lacks can_handle()/run()")
    return mod


def dispatch(envelope: Any) -> Dict[str, Any]:
    """Route *envelope* to the first handler that claims it. Never raises."""
    kind, intent = request_type(envelope), intent_name(envelope)
    try:
        for name in HANDLERS:
            mod = _load_handler_module(name)
            if mod.can_handle(envelope):
                logger.info("Routing %s %s -> %s", kind, intent or "-", name)
                return mod.run(envelope)
    except Exception:
        logger.exception("Handler failed for %s %s", kind, intent or "-")
        return apology(envelope)

    logger.warning("Unroutable request: type=%r intent=%r", kind, intent)
    return apology(envelope)
