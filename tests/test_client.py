from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import make_response, message_body, sse
from openai_responses import client as client_module
from openai_responses.client import ResponsesClient
from openai_responses.config import Config
from openai_responses.errors import ConfigError, ResponsesError, TransportError
from openai_responses.sse import SSEEvent
from openai_responses.stream import delta, error_of, text_deltas


def _sent(session, index=-1):
    args, kwargs = session.request.call_args_list[index]
    return args, kwargs


def test_create_posts_payload(client, session):
    session.request.return_value = make_response(body=message_body("Hi there"))

    result = client.create("Hello", instructions="Be brief", schema=None)

    assert result.ok
    assert result.value.text == "Hi there"
    args, kwargs = _sent(session)
    assert args == ("POST", "https://api.test/v1/responses")
    assert kwargs["json"] == {"input": "Hello", "instructions": "Be brief", "model": "gpt-4.1-mini"}
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["timeout"] == 30


def test_create_with_schema_parses_output(client, session):
    body = message_body(
        '{"name": "Alice", "age": 30}',
        text={"format": {"type": "json_schema", "name": "data", "schema": {"type": "object"}}},
    )
    session.request.return_value = make_response(body=body)

    response = client.create_or_raise("Alice is 30", schema={"name": "string", "age": "integer"})

    assert response.parsed == {"name": "Alice", "age": 30}
    sent = _sent(session)[1]["json"]
    assert sent["text"]["format"]["schema"]["required"] == ["age", "name"]


def test_http_error_is_returned(client, session):
    error = {"message": "Invalid model", "type": "invalid_request_error", "code": "model_not_found"}
    session.request.return_value = make_response(status_code=400, body={"error": error})

    result = client.create("Hi", model="nope")

    assert not result.ok
    assert isinstance(result.error, TransportError)
    assert result.error.status_code == 400
    assert result.error.body == error
    assert str(result.error) == "Invalid model"


def test_http_error_without_json_body(client, session):
    session.request.return_value = make_response(status_code=502, text="Bad Gateway")

    result = client.create("Hi")

    assert result.error.status_code == 502
    assert result.error.body == "Bad Gateway"


def test_connection_error_is_returned(client, session):
    session.request.side_effect = requests.ConnectionError("refused")

    result = client.create("Hi")

    assert isinstance(result.error, TransportError)
    assert result.error.status_code is None


def test_or_raise_raises(client, session):
    session.request.return_value = make_response(status_code=500, body={"error": {"message": "boom"}})
    with pytest.raises(TransportError, match="boom"):
        client.create_or_raise("Hi")


def test_missing_input_raises_before_sending(client, session):
    with pytest.raises(ConfigError):
        client.create(model="gpt-4o")
    session.request.assert_not_called()


def test_missing_api_key_raises(session):
    client = ResponsesClient(config=Config(api_key=None), session=session)
    with pytest.raises(ConfigError):
        client.create("Hi")
    session.request.assert_not_called()


def test_follow_up_chains_previous_response(client, session):
    session.request.return_value = make_response(body=message_body("First", model="gpt-4o-2024-08-06"))
    first = client.create_or_raise("Hi")

    session.request.return_value = make_response(body=message_body("Second", response_id="resp_2"))
    client.follow_up_or_raise(first, input="More")

    sent = _sent(session)[1]["json"]
    assert sent["previous_response_id"] == "resp_1"
    assert sent["model"] == "gpt-4o-2024-08-06"


def test_stream_yields_events_and_closes(client, session):
    resp = make_response(chunks=[
        sse("response.created", {"response": {"id": "resp_1"}})[:10],
        sse("response.created", {"response": {"id": "resp_1"}})[10:],
        sse("response.output_text.delta", {"delta": "Hi"}),
    ])
    session.request.return_value = resp

    events = list(client.stream("Hello"))

    assert events == [
        SSEEvent("response.created", {"response": {"id": "resp_1"}}),
        SSEEvent("response.output_text.delta", {"delta": "Hi"}),
    ]
    kwargs = _sent(session)[1]
    assert kwargs["stream"] is True
    assert kwargs["json"]["stream"] is True
    resp.close.assert_called_once()


def test_stream_is_lazy(client, session):
    client.stream("Hello")
    session.request.assert_not_called()


def test_stream_closes_on_early_exit(client, session):
    resp = make_response(chunks=[sse("a", {}), sse("b", {})])
    session.request.return_value = resp

    events = client.stream("Hello")
    next(events)
    events.close()

    resp.close.assert_called_once()


def test_stream_http_error_is_yielded_as_error_event(client, session):
    resp = make_response(status_code=500, body={"error": {"message": "boom"}})
    session.request.return_value = resp

    events = list(client.stream("Hello"))

    assert len(events) == 1
    assert events[0].type == "error"
    error = error_of(events[0])
    assert error["message"] == "boom"
    assert error["status_code"] == 500
    assert error["code"] == "transport_error"
    assert list(text_deltas(client.stream("Hello"))) == []
    assert resp.close.call_count == 2


def test_stream_interrupted_ends_with_error_event(client, session):
    def chunks(chunk_size=None):
        yield sse("response.output_text.delta", {"delta": "Hi"})
        raise requests.ConnectionError("reset")

    resp = make_response()
    resp.iter_content.side_effect = chunks
    session.request.return_value = resp

    events = list(client.stream("Hello"))

    assert events[0] == SSEEvent("response.output_text.delta", {"delta": "Hi"})
    assert events[1].type == "error"
    assert "interrupted" in error_of(events[1])["message"]
    resp.close.assert_called_once()


def test_stream_connection_error_is_yielded(client, session):
    session.request.side_effect = requests.ConnectionError("refused")

    events = list(client.stream("Hello"))

    assert [event.type for event in events] == ["error"]
    assert "status_code" not in error_of(events[0])


def test_stream_or_raise_raises_on_iteration(client, session):
    resp = make_response(status_code=401, body={"error": {"message": "Bad key"}})
    session.request.return_value = resp

    events = client.stream_or_raise("Hello")
    with pytest.raises(TransportError, match="Bad key"):
        next(events)
    resp.close.assert_called_once()


def test_stream_missing_api_key_raises_immediately(session):
    client = ResponsesClient(config=Config(api_key=None), session=session)
    with pytest.raises(ConfigError):
        client.stream("Hello")
    session.request.assert_not_called()


def test_create_with_stream_callback(client, session):
    final = message_body("Hello world")
    session.request.return_value = make_response(chunks=[
        sse("response.created", {"response": {"id": "resp_1", "status": "in_progress"}}),
        sse("response.output_text.delta", {"delta": "Hello"}),
        sse("response.output_text.delta", {"delta": " world"}),
        sse("response.completed", {"response": final}),
    ])
    texts = []

    result = client.create("Hi", stream=delta(texts.append))

    assert texts == ["Hello", " world"]
    assert result.value.body == final
    assert result.value.text == "Hello world"
    assert result.value.cost.total_cost > 0


@pytest.mark.parametrize("stop", [("error", "enough"), False])
def test_stream_callback_can_stop_the_stream(client, session, stop):
    resp = make_response(chunks=[
        sse("response.output_text.delta", {"delta": "Hello"}),
        sse("response.output_text.delta", {"delta": " world"}),
        sse("response.completed", {"response": message_body("Hello world")}),
    ])
    session.request.return_value = resp
    seen = []

    def callback(event):
        seen.append(event)
        return stop

    result = client.create("Hi", stream=callback)

    assert len(seen) == 1
    assert not result.ok
    assert result.error.code == "stream_stopped"
    if stop is not False:
        assert str(result.error) == "enough"
    resp.close.assert_called_once()


def test_delta_callback_return_value_stops_the_stream(client, session):
    session.request.return_value = make_response(chunks=[
        sse("response.output_text.delta", {"delta": "Hello"}),
        sse("response.output_text.delta", {"delta": " world"}),
    ])
    texts = []

    def first_only(text):
        texts.append(text)
        return ("error", "got one")

    result = client.create("Hi", stream=delta(first_only))

    assert texts == ["Hello"]
    assert result.error.details == {"reason": "got one"}


def test_create_stream_failure_event(client, session):
    session.request.return_value = make_response(chunks=[
        sse("response.created", {"response": {"id": "resp_1"}}),
        sse("response.failed", {"response": {"id": "resp_1", "status": "failed", "error": {"message": "overloaded"}}}),
    ])

    result = client.create("Hi", stream=lambda event: None)

    assert not result.ok
    assert result.error.code == "response_failed"
    assert str(result.error) == "overloaded"


def test_create_stream_transport_error(client, session):
    session.request.return_value = make_response(status_code=429, body={"error": {"message": "Slow down"}})

    result = client.create("Hi", stream=lambda event: None)

    assert isinstance(result.error, TransportError)
    assert result.error.status_code == 429


def test_get_delete_and_input_items(client, session):
    session.request.return_value = make_response(body=message_body("Stored"))
    assert client.get("resp_1", include=["file_search_call.results"]).value.text == "Stored"
    args, kwargs = _sent(session)
    assert args == ("GET", "https://api.test/v1/responses/resp_1")
    assert kwargs["params"] == {"include[]": ["file_search_call.results"]}

    session.request.return_value = make_response(body={"id": "resp_1", "deleted": True})
    assert client.delete("resp_1").value["deleted"] is True
    assert _sent(session)[0] == ("DELETE", "https://api.test/v1/responses/resp_1")

    session.request.return_value = make_response(body={"object": "list", "data": []})
    client.list_input_items("resp_1", limit=5, order="asc")
    args, kwargs = _sent(session)
    assert args[1] == "https://api.test/v1/responses/resp_1/input_items"
    assert kwargs["params"] == {"limit": 5, "order": "asc"}


def test_list_models_filters_by_match(client, session):
    session.request.return_value = make_response(body={"data": [{"id": "gpt-4o"}, {"id": "o3"}, {"id": "gpt-4.1"}]})
    result = client.list_models("gpt")
    assert [m["id"] for m in result.value] == ["gpt-4o", "gpt-4.1"]


def test_from_config():
    client = ResponsesClient.from_config({"openai_api_key": "sk-dict", "default_model": "o3"})
    assert client.config.api_key == "sk-dict"
    assert client.config.default_model == "o3"


def test_module_level_create_uses_default_client():
    fake = MagicMock(spec=ResponsesClient)
    with patch.object(client_module, "_default_client", fake):
        client_module.create("Hi", model="o3")
    fake.create.assert_called_once_with("Hi", model="o3")


def test_response_error_to_dict():
    error = ResponsesError("boom", code="x", details={"a": 1})
    assert error.to_dict() == {"error": {"message": "boom", "code": "x", "details": {"a": 1}}}
