"""handlers/launch.py ― skill opened without a question."""
from typing import Dict

from conductor import build_response, request_type, session_attributes

WELCOME  = "Hi! Ask me anything, and I'll find you an answer."
REPROMPT = "What would you like to know?"


def can_handle(envelope: Dict) -> bool:
    return request_type(envelope) == "LaunchRequest"


def run(envelope: Dict) -> Dict:
    return build_response(WELCOME, reprompt=REPROMPT,
                          attributes=session_attributes(envelope))
