"""
Server-Sent Events decoder for the Responses streaming endpoint.

Frames are separated by a blank line and look like:

    event: response.output_text.delta
    data: {"type": "response.output_text.delta", "delta": "Hi"}

The decoder is push-based: hand it chunks as they come off the socket and it
returns whatever complete events they finished. Only the unterminated tail
of the stream is kept between calls.
"""
import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from .errors import DecodeError

log = logging.getLogger(__name__)

FRAME_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class SSEEvent:
    """One decoded event. `event` comes from the `event:` line."""
    event: str
    data: Any

    @property
    def type(self) -> str:
        return self.event

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.event, "data": self.data}


class SSEDecoder:
    """
    Incremental SSE decoder.

    Splitting the same byte stream at different chunk boundaries always
    yields the same events. Frames without both an `event:` and a `data:`
    line, and frames whose data is not JSON, are dropped; the stream goes on.
    """

    def __init__(self):
        self._parts: List[str] = []
        self._last = ""
        self._carry = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """The partial frame carried over to the next chunk."""
        return "".join(self._parts) + self._carry

    def feed(self, chunk: Union[bytes, bytearray, str]) -> List[SSEEvent]:
        """
        Consume one chunk and return the events it completed (possibly none).

        Only the new text (plus one character of overlap) is scanned for a
        frame separator, so a frame costs time linear in its length however
        finely it is chunked.
        """
        if isinstance(chunk, (bytes, bytearray)):
            text = self._utf8.decode(bytes(chunk))
        else:
            text = chunk
        text = self._carry + text
        # A trailing "\r" may be the first half of a "\r\n" split across chunks.
        self._carry = "\r" if text.endswith("\r") else ""
        if self._carry:
            text = text[:-1]
        text = text.replace("\r\n", "\n")
        if not text:
            return []

        if FRAME_SEPARATOR not in self._last + text:
            self._parts.append(text)
            self._last = text[-1]
            return []

        self._parts.append(text)
        frames = "".join(self._parts).split(FRAME_SEPARATOR)
        tail = frames.pop()
        self._parts = [tail] if tail else []
        self._last = tail[-1:]
        return self._decode_frames(frames)

    def flush(self) -> List[SSEEvent]:
        """Decode a last frame that ended without a blank line, then reset."""
        tail = (self.pending + self._utf8.decode(b"", final=True)).replace("\r\n", "\n")
        self._parts = []
        self._last = ""
        self._carry = ""
        self._utf8.reset()
        return self._decode_frames([tail])

    def _decode_frames(self, frames: List[str]) -> List[SSEEvent]:
        events = []
        for frame in frames:
            if not frame.strip():
                continue
            try:
                event = decode_frame(frame)
            except DecodeError as e:
                log.warning(f"Dropping SSE frame: {e.message}")
                continue
            if event is not None:
                events.append(event)
        return events


def decode_frame(frame: str) -> Optional[SSEEvent]:
    """
    Decode a single frame.

    Returns None for comment frames and frames missing `event:` or `data:`.
    Raises DecodeError when the data is not valid JSON.
    """
    event_type = None
    data_lines = []
    for line in frame.split("\n"):
        if not line or line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event" and event_type is None:
            event_type = value
        elif field == "data":
            data_lines.append(value)

    if event_type is None or not data_lines:
        if event_type is not None or data_lines:
            log.debug(f"Skipping incomplete SSE frame: {frame[:100]!r}")
        return None

    data = "\n".join(data_lines)
    if data == "[DONE]":
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON in {event_type!r} event: {e}", frame) from e
    return SSEEvent(event=event_type, data=payload)


def iter_events(chunks: Iterable[Union[bytes, str]]) -> Iterator[SSEEvent]:
    """Decode an iterable of raw chunks into events, lazily."""
    decoder = SSEDecoder()
    for chunk in chunks:
        if chunk:
            yield from decoder.feed(chunk)
    yield from decoder.flush()
