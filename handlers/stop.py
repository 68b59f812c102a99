"""handlers/stop.py ― cancel and stop both end the session."""
from typing import Dict

from conductor import build_response, intent_name, request_type

GOODBYE = "Goodbye!"
INTENTS = {"AMAZON.CancelIntent", "AMAZON.StopIntent"}


def can_handle(envelope: Dict) -> bool:
    return (request_type(envelope) == "IntentRequest"
            and intent_name(envelope) in INTENTS)


def run(envelope: Dict) -> Dict:
    return build_response(GOODBYE, end_session=True)
