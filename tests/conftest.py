import pytest
import requests

import worker


class FakeResponse:
    def __init__(self, payload=None, status=200, bad_json=False):
        self.payload = payload
        self.status_code = status
        self.bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if self.bad_json:
            raise ValueError("not json")
        return self.payload


def answer_payload(text):
    return {"content": [{"type": "text", "text": text}], "stop_reason": "end_turn"}


@pytest.fixture
def cfg(monkeypatch, tmp_path):
    monkeypatch.setattr(worker, "CONFIG_PATH", tmp_path / "config.json")
    for env_name in worker.ENV_KEYS.values():
        monkeypatch.delenv(env_name, raising=False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    return worker.load_config()


class PostRecorder:
    """Stands in for requests.post; replays one canned response or exception."""

    def __init__(self):
        self.calls = []
        self.result = FakeResponse(answer_payload("Hello there."))

    def respond(self, result):
        self.result = result

    def answer(self, text):
        self.result = FakeResponse(answer_payload(text))

    def __call__(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def fake_post(monkeypatch):
    recorder = PostRecorder()
    monkeypatch.setattr(worker.requests, "post", recorder)
    return recorder
