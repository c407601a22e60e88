import json
import logging

import pytest

from openai_responses.errors import DecodeError
from openai_responses.sse import SSEDecoder, SSEEvent, decode_frame, iter_events


def _frame(event, data):
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


STREAM = (
    _frame("response.created", {"response": {"id": "resp_1", "status": "in_progress"}})
    + _frame("response.output_text.delta", {"delta": "Héllo"})
    + ": keep-alive comment\n\n"
    + _frame("response.output_text.delta", {"delta": " wörld ✓"})
    + _frame("response.completed", {"response": {"id": "resp_1", "status": "completed"}})
).encode("utf-8")


def _decode_in_chunks(data, size):
    decoder = SSEDecoder()
    events = []
    for i in range(0, len(data), size):
        events.extend(decoder.feed(data[i:i + size]))
    events.extend(decoder.flush())
    return events


def test_single_frame():
    events = SSEDecoder().feed(b'event: response.output_text.delta\ndata: {"delta":"Hi"}\n\n')
    assert events == [SSEEvent("response.output_text.delta", {"delta": "Hi"})]
    assert events[0].type == "response.output_text.delta"


def test_byte_by_byte_split_yields_one_event():
    frame = b'event: response.output_text.delta\ndata: {"delta":"Hi"}\n\n'
    assert _decode_in_chunks(frame, 1) == [SSEEvent("response.output_text.delta", {"delta": "Hi"})]


@pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 16, 64, 1000])
def test_chunk_boundaries_do_not_change_events(size):
    expected = SSEDecoder().feed(STREAM)
    assert len(expected) == 4
    assert _decode_in_chunks(STREAM, size) == expected


def test_multibyte_characters_split_across_chunks():
    events = _decode_in_chunks(STREAM, 1)
    assert events[1].data["delta"] == "Héllo"
    assert events[2].data["delta"] == " wörld ✓"


def test_partial_frame_is_kept_until_terminated():
    decoder = SSEDecoder()
    assert decoder.feed("event: error\ndata: {\"message\"") == []
    assert decoder.pending.startswith("event: error")
    assert decoder.feed(': "boom"}\n\n') == [SSEEvent("error", {"message": "boom"})]
    assert decoder.pending == ""


def test_crlf_line_endings():
    events = SSEDecoder().feed(b'event: response.created\r\ndata: {"a": 1}\r\n\r\n')
    assert events == [SSEEvent("response.created", {"a": 1})]


def test_crlf_split_across_chunks():
    decoder = SSEDecoder()
    assert decoder.feed(b'event: a\r') == []
    assert decoder.feed(b'\ndata: {"a": 1}\r\n\r') == []
    assert decoder.feed(b"\n") == [SSEEvent("a", {"a": 1})]
    assert decoder.pending == ""


def test_long_frame_fed_byte_by_byte():
    payload = "x" * 5000
    data = _frame("a", {"text": payload}).encode("utf-8")
    decoder = SSEDecoder()
    for i in range(len(data) - 1):
        assert decoder.feed(data[i:i + 1]) == []
    assert len(decoder.pending) == len(data) - 1
    assert decoder.feed(data[-1:]) == [SSEEvent("a", {"text": payload})]
    assert decoder.pending == ""


def test_frames_without_event_or_data_are_dropped():
    decoder = SSEDecoder()
    assert decoder.feed('data: {"a": 1}\n\n') == []
    assert decoder.feed("event: response.created\n\n") == []
    assert decoder.feed("data: [DONE]\n\n") == []


def test_bad_json_drops_only_that_frame(caplog):
    data = "event: a\ndata: {not json\n\n" + _frame("b", {"ok": True})
    with caplog.at_level(logging.WARNING):
        events = SSEDecoder().feed(data)
    assert events == [SSEEvent("b", {"ok": True})]
    assert "Dropping SSE frame" in caplog.text


def test_event_line_is_authoritative_over_payload_type():
    events = SSEDecoder().feed('event: response.completed\ndata: {"type": "something.else"}\n\n')
    assert events[0].event == "response.completed"


def test_multiple_data_lines_are_joined():
    event = decode_frame('event: x\ndata: {"a":\ndata: 1}')
    assert event == SSEEvent("x", {"a": 1})


def test_decode_frame_raises_decode_error():
    with pytest.raises(DecodeError):
        decode_frame("event: x\ndata: nope")


def test_flush_decodes_unterminated_last_frame():
    decoder = SSEDecoder()
    assert decoder.feed('event: done\ndata: {"n": 1}') == []
    assert decoder.flush() == [SSEEvent("done", {"n": 1})]
    assert decoder.pending == ""


def test_iter_events_is_lazy():
    consumed = []

    def chunks():
        for chunk in (STREAM[:40], STREAM[40:]):
            consumed.append(chunk)
            yield chunk

    events = iter_events(chunks())
    assert consumed == []
    first = next(events)
    assert first.event == "response.created"
    assert len(list(events)) == 3


def test_to_dict():
    assert SSEEvent("a", {"b": 1}).to_dict() == {"event": "a", "data": {"b": 1}}
