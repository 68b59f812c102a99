"""handlers/session_ended.py ― platform closed the session; nothing is spoken."""
import logging
from typing import Dict

from conductor import empty_response, request_type

logger = logging.getLogger(__name__)


def can_handle(envelope: Dict) -> bool:
    return request_type(envelope) == "SessionEndedRequest"


def run(envelope: Dict) -> Dict:
    req = envelope.get("request") or {}
    logger.info("Session ended: reason=%s error=%s",
                req.get("reason"), req.get("error"))
    return empty_response()
