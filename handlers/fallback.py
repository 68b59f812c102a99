"""handlers/fallback.py ― the platform could not map the utterance to an intent."""
from typing import Dict

from conductor import apology, intent_name, request_type


def can_handle(envelope: Dict) -> bool:
    return (request_type(envelope) == "IntentRequest"
            and intent_name(envelope) == "AMAZON.FallbackIntent")


def run(envelope: Dict) -> Dict:
    return apology(envelope)
