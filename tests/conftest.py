import json
from unittest.mock import MagicMock

import pytest
import requests

from openai_responses.client import ResponsesClient
from openai_responses.config import Config


def make_response(status_code=200, body=None, chunks=None, text=None):
    """A stand-in for requests.Response."""
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.url = "https://api.test/v1/responses"
    if text is None:
        text = json.dumps(body) if body is not None else ""
    resp.text = text
    if body is not None:
        resp.json.return_value = body
    else:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    resp.iter_content.return_value = iter(chunks or [])
    return resp


def sse(event, data):
    return f"event: {event}\ndata: {json.dumps(data)}\n\n".encode("utf-8")


def message_body(reply, response_id="resp_1", model="gpt-4.1-mini", **extra):
    body = {
        "id": response_id,
        "model": model,
        "status": "completed",
        "output": [{"type": "message", "role": "assistant", "content": [{"type": "output_text", "text": reply}]}],
        "usage": {"input_tokens": 10, "output_tokens": 5},
    }
    body.update(extra)
    return body


def function_call_body(calls, response_id="resp_fc", model="gpt-4.1-mini"):
    return {
        "id": response_id,
        "model": model,
        "status": "completed",
        "output": [
            {"type": "function_call", "name": name, "call_id": call_id, "arguments": json.dumps(args)}
            for name, call_id, args in calls
        ],
    }


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    config = Config(api_key="sk-test", api_base="https://api.test/v1", timeout=30)
    return ResponsesClient(config=config, session=session)
