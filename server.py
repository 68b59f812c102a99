"""server.py
Flask front‑end and serverless entry point for the voice skill.

Highlights
----------
* `POST /` (alias `/skill`) takes a skill request envelope, returns a response envelope.
* `lambda_handler(event, context)` does the same for a serverless deployment.
* Bad input never surfaces as an HTTP error: callers always get a spoken apology.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Flask, jsonify, request
from flask_cors import CORS

from conductor import apology, dispatch

logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s - %(message)s")
logger = logging.getLogger("voice_skill")

# ---------------------------------------------------------------------------
# Flask app
# ---------------------------------------------------------------------------

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": "*"}})

# ---------------------------------------------------------------------------
# Skill endpoints
# ---------------------------------------------------------------------------

@app.route("/", methods=["POST"])
@app.route("/skill", methods=["POST"])
def skill_route():
    envelope = request.get_json(force=True, silent=True)
    if not isinstance(envelope, dict):
        logger.warning("Rejected non-JSON skill request (%s bytes)", request.content_length)
        return jsonify(apology({}))
    return jsonify(dispatch(envelope))


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})

# ---------------------------------------------------------------------------
# Serverless entry
# ---------------------------------------------------------------------------

def lambda_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Serverless entry: *event* is the request envelope itself."""
    return dispatch(event)

# ---------------------------------------------------------------------------
# Run app
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8000, debug=True)
