"""
Stream consumers - fold decoded SSE events into text or a full response.

    events = client.stream("Tell me a story")
    for text in text_deltas(events):
        print(text, end="", flush=True)

    response_body = collect(client.stream("Tell me a story"))

collect() is a plain left fold over reduce_event(); a `response.completed`
event replaces everything assembled before it.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .sse import SSEEvent

log = logging.getLogger(__name__)

RESPONSE_CREATED = "response.created"
RESPONSE_IN_PROGRESS = "response.in_progress"
OUTPUT_ITEM_ADDED = "response.output_item.added"
OUTPUT_TEXT_DELTA = "response.output_text.delta"
OUTPUT_TEXT_DONE = "response.output_text.done"
RESPONSE_COMPLETED = "response.completed"
RESPONSE_FAILED = "response.failed"
ERROR = "error"


@dataclass(frozen=True)
class AggregatorState:
    """Accumulated response plus terminal flags. Never mutated in place."""
    response: Dict[str, Any] = field(default_factory=dict)
    completed: bool = False
    failed: bool = False


def initial_state() -> AggregatorState:
    return AggregatorState()


def is_terminal(state: AggregatorState) -> bool:
    return state.completed or state.failed


def reduce_event(state: AggregatorState, event: SSEEvent) -> AggregatorState:
    """Apply one event to the state and return the new state."""
    data = event.data if isinstance(event.data, dict) else {}
    kind = event.event

    if kind in (RESPONSE_CREATED, RESPONSE_IN_PROGRESS):
        response = data.get("response")
        if not isinstance(response, dict):
            return state
        return replace(state, response={**state.response, **response})

    if kind == OUTPUT_ITEM_ADDED:
        index = data.get("output_index")
        item = data.get("item")
        if not isinstance(index, int) or index < 0 or item is None:
            return state
        output = list(state.response.get("output") or [])
        _place(output, index, item)
        return replace(state, response={**state.response, "output": output})

    if kind == OUTPUT_TEXT_DONE:
        return _apply_text_done(state, data)

    if kind == RESPONSE_COMPLETED:
        return AggregatorState(response=_response_of(data), completed=True)

    if kind == RESPONSE_FAILED:
        log.warning(f"Response failed: {_response_of(data).get('error')}")
        return replace(state, failed=True)

    return state


def _apply_text_done(state: AggregatorState, data: Dict[str, Any]) -> AggregatorState:
    index = data.get("output_index")
    content_index = data.get("content_index")
    text = data.get("text")
    if not isinstance(index, int) or not isinstance(content_index, int) or text is None:
        return state

    output = list(state.response.get("output") or [])
    if not 0 <= index < len(output) or not isinstance(output[index], dict):
        return state

    item = dict(output[index])
    content = list(item.get("content") or [])
    _place(content, content_index, {"type": "output_text", "text": text})
    item["content"] = content
    output[index] = item
    return replace(state, response={**state.response, "output": output})


def _place(items: List[Any], index: int, value: Any) -> None:
    # Gaps are held by None so out-of-order indices land where they belong.
    if index >= len(items):
        items.extend([None] * (index - len(items)))
        items.append(value)
    elif items[index] is None:
        items[index] = value
    else:
        items.insert(index, value)


def _response_of(data: Dict[str, Any]) -> Dict[str, Any]:
    response = data.get("response")
    return response if isinstance(response, dict) else {}


def collect(events: Iterable[SSEEvent]) -> Dict[str, Any]:
    """
    Fold a stream of events into a single response body.

    Events after a terminal `response.completed` / `response.failed` are
    drained but ignored. A stream that ends early returns the partial body.
    """
    state = initial_state()
    for event in events:
        if not is_terminal(state):
            state = reduce_event(state, event)
    return state.response


def text_deltas(events: Iterable[SSEEvent]) -> Iterator[str]:
    """
    Yield text as it arrives.

    Only `response.output_text.delta` events emit; the matching `.done`
    events repeat text that was already yielded and are skipped.
    """
    for event in events:
        if event.event != OUTPUT_TEXT_DELTA or not isinstance(event.data, dict):
            continue
        delta = event.data.get("delta")
        if delta:
            yield delta


def delta(callback: Callable[[str], Any]) -> Callable[[SSEEvent], Any]:
    """
    Wrap a text callback as a stream callback. Its return value is passed
    through, so the text callback can stop the stream too.

        client.create("Write a poem", stream=delta(print))
    """
    def handle(event: SSEEvent) -> Any:
        if event.event == OUTPUT_TEXT_DELTA and isinstance(event.data, dict):
            text = event.data.get("delta")
            if text:
                return callback(text)
        return None

    return handle


def error_of(event: SSEEvent) -> Optional[Dict[str, Any]]:
    """The error object carried by an `error` or `response.failed` event, if any."""
    if not isinstance(event.data, dict):
        return None
    if event.event == ERROR:
        return event.data.get("error") or event.data
    if event.event == RESPONSE_FAILED:
        return _response_of(event.data).get("error")
    return None
