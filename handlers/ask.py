"""
handlers/ask.py
Free-text question: send it to the answer service with the session history,
speak the reformatted answer and invite a follow-up.
"""
from typing import Dict

from conductor import (
    build_response,
    intent_name,
    request_type,
    session_attributes,
    slot_value,
)
from worker import process_message

INTENT_NAME = "AskIntent"
SLOT_NAME   = "query"

FOLLOW_UP_PROMPT = "What else would you like to know?"
EMPTY_PROMPT     = "What would you like to ask?"


def can_handle(envelope: Dict) -> bool:
    return (request_type(envelope) == "IntentRequest"
            and intent_name(envelope) == INTENT_NAME)


def run(envelope: Dict) -> Dict:
    query = slot_value(envelope, SLOT_NAME)
    attrs = session_attributes(envelope)
    if not query:
        return build_response(EMPTY_PROMPT, reprompt=EMPTY_PROMPT, attributes=attrs)

    speech, attrs = process_message(query, attrs)
    return build_response(f"{speech} {FOLLOW_UP_PROMPT}",
                          reprompt=FOLLOW_UP_PROMPT, attributes=attrs)
