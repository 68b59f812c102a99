"""handlers/help.py ― usage hint, session stays open."""
from typing import Dict

from conductor import build_response, intent_name, request_type, session_attributes

HELP_TEXT = ("You can ask me almost anything, like: what is quantum computing? "
             "I'll remember the last few things we talked about, so follow-up "
             "questions work too.")
REPROMPT  = "Go ahead, ask me a question."


def can_handle(envelope: Dict) -> bool:
    return (request_type(envelope) == "IntentRequest"
            and intent_name(envelope) == "AMAZON.HelpIntent")


def run(envelope: Dict) -> Dict:
    return build_response(HELP_TEXT, reprompt=REPROMPT,
                          attributes=session_attributes(envelope))
