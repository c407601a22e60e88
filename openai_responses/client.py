"""
Responses API client - thin HTTP layer over POST /responses and friends
"""
import logging
from typing import Any, Callable, Dict, Generator, List, Optional, Union

import requests

from .config import Config, _UNSET
from .errors import ResponsesError, TransportError
from .payload import follow_up_options, prepare_payload
from .sse import SSEDecoder, SSEEvent
from .stream import ERROR, error_of, initial_state, is_terminal, reduce_event
from .types import Response, Result

log = logging.getLogger(__name__)

StreamCallback = Callable[[SSEEvent], Any]


def _error_event(error: TransportError) -> SSEEvent:
    """A failed streaming request, as the terminal `error` event of the stream."""
    body = {"message": error.message, "code": error.code}
    if error.status_code is not None:
        body["status_code"] = error.status_code
    if error.body is not None:
        body["body"] = error.body
    return SSEEvent(ERROR, {"type": ERROR, "error": body})


def _stop_reason(outcome: Any) -> Any:
    # Callbacks stop the stream by returning False or ("error", reason).
    if outcome is False:
        return "stopped by callback"
    if isinstance(outcome, tuple) and len(outcome) == 2 and outcome[0] == "error":
        return outcome[1]
    return None


class ResponsesClient:
    """
    Client for the OpenAI Responses API.

    Usage:
        client = ResponsesClient()  # key from openai_responses.json or OPENAI_API_KEY

        result = client.create("Write a haiku about Python")
        if result.ok:
            print(result.value.text)

        # Structured output
        response = client.create_or_raise(
            "Extract the user: Alice is 30",
            schema={"name": "string", "age": "integer"},
        )
        print(response.parsed)

        # Streaming
        for event in client.stream("Tell me a story"):
            print(event.type)

    Calls that reach the network return a Result; the *_or_raise variants
    raise the error instead. Missing options or credentials raise
    ConfigError straight away.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        default_model: Optional[str] = _UNSET,
        config: Optional[Config] = None,
        session: Optional[requests.Session] = None,
    ):
        if config is None:
            config = Config.resolve(
                api_key=api_key,
                api_base=api_base,
                timeout=timeout,
                default_model=default_model,
            )
        self.config = config
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ResponsesClient":
        """Create a client from a config dict (same keys as openai_responses.json)."""
        return cls(config=Config.from_dict(config))

    # ========================================================================
    # Transport
    # ========================================================================

    def _url(self, path: str) -> str:
        return f"{self.config.api_base}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.require_api_key()}",
        }

    def _http_error(self, resp: requests.Response) -> TransportError:
        try:
            body = resp.json()
        except ValueError:
            body = None
        error = body.get("error") if isinstance(body, dict) else None
        message = error.get("message") if isinstance(error, dict) else None
        log.error(f"OpenAI API error {resp.status_code}: {resp.text[:500]}")
        return TransportError(
            message or f"HTTP {resp.status_code} from {resp.url}",
            status_code=resp.status_code,
            body=error if error is not None else resp.text[:500],
        )

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Result[Dict[str, Any]]:
        """Send one request and decode the JSON body."""
        url = self._url(path)
        headers = self._headers()
        log.debug(f"{method} {url}")
        try:
            resp = self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            log.error(f"{method} {url} failed: {e}")
            return Result.failure(TransportError(f"{method} {url} failed: {e}"))

        if not resp.ok:
            return Result.failure(self._http_error(resp))

        try:
            return Result.success(resp.json())
        except ValueError as e:
            log.error(f"Invalid JSON from {url}: {resp.text[:500]}")
            return Result.failure(
                TransportError(f"Invalid JSON from {url}: {e}", status_code=resp.status_code)
            )

    # ========================================================================
    # Create
    # ========================================================================

    def create(self, input: Any = None, **options) -> Result[Response]:
        """
        Create a response.

        Args:
            input: A string or a list of input items (also accepted as an option)
            **options: Request options (model, tools, instructions, schema,
                schema_name, temperature, previous_response_id, ...).
                `stream` may be a callable; it then receives every SSEEvent
                as it arrives and the collected response is returned.
                The callback may return False or ("error", reason) to stop
                the stream; create then returns a failed Result with code
                "stream_stopped".

        Returns:
            Result wrapping the processed Response
        """
        if input is not None:
            options["input"] = input
        stream = options.pop("stream", None)
        if stream:
            return self._create_streaming(options, stream if callable(stream) else None)

        payload = prepare_payload(options, self.config.default_model)
        result = self.request("POST", "responses", json=payload)
        if not result.ok:
            return Result.failure(result.error)
        return Result.success(Response.from_body(result.value))

    def _create_streaming(
        self,
        options: Dict[str, Any],
        callback: Optional[StreamCallback],
    ) -> Result[Response]:
        state = initial_state()
        error = None
        payload, headers = self._stream_request(None, options)
        events = self._stream_events(payload, headers, raise_errors=True)
        try:
            for event in events:
                if callback is not None:
                    reason = _stop_reason(callback(event))
                    if reason is not None:
                        log.info(f"Stream stopped by callback: {reason}")
                        return Result.failure(
                            ResponsesError(str(reason), code="stream_stopped", details={"reason": reason})
                        )
                if error is None:
                    error = error_of(event)
                if not is_terminal(state):
                    state = reduce_event(state, event)
        except TransportError as e:
            return Result.failure(e)
        finally:
            events.close()

        if error is not None and not state.completed:
            message = error.get("message") if isinstance(error, dict) else str(error)
            return Result.failure(
                ResponsesError(message or "Response failed", code="response_failed", details={"error": error})
            )
        return Result.success(Response.from_body(state.response))

    def create_or_raise(self, input: Any = None, **options) -> Response:
        return self.create(input, **options).unwrap()

    def follow_up(self, previous: Union[Response, Dict[str, Any]], **options) -> Result[Response]:
        """
        Continue from a previous response.

            first = client.create_or_raise("What is Python?")
            second = client.follow_up(first, input="Tell me about its GIL")
        """
        return self.create(**follow_up_options(previous, options))

    def follow_up_or_raise(self, previous: Union[Response, Dict[str, Any]], **options) -> Response:
        return self.follow_up(previous, **options).unwrap()

    # ========================================================================
    # Streaming
    # ========================================================================

    def stream(self, input: Any = None, **options) -> Generator[SSEEvent, None, None]:
        """
        Stream a response as SSEEvents.

        The request is sent when iteration starts. Yields events like:
            SSEEvent("response.created", {"response": {...}})
            SSEEvent("response.output_text.delta", {"delta": "..."})
            SSEEvent("response.completed", {"response": {...}})

        If the request fails or the connection drops, the last event is
        SSEEvent("error", {"type": "error", "error": {...}}) carrying the
        TransportError details; nothing is raised. Use stream_or_raise to get
        the TransportError instead.
        """
        payload, headers = self._stream_request(input, options)
        return self._stream_events(payload, headers)

    def stream_or_raise(self, input: Any = None, **options) -> Generator[SSEEvent, None, None]:
        """Like stream(), but a failed request raises TransportError from the iterator."""
        payload, headers = self._stream_request(input, options)
        return self._stream_events(payload, headers, raise_errors=True)

    def _stream_request(self, input: Any, options: Dict[str, Any]):
        if input is not None:
            options["input"] = input
        options.pop("stream", None)
        payload = prepare_payload(options, self.config.default_model)
        payload["stream"] = True
        headers = self._headers()
        headers["Accept"] = "text/event-stream"
        return payload, headers

    def _stream_events(
        self,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        raise_errors: bool = False,
    ) -> Generator[SSEEvent, None, None]:
        url = self._url("responses")
        log.debug(f"POST {url} (stream)")
        try:
            resp = self.session.request(
                "POST",
                url,
                json=payload,
                headers=headers,
                stream=True,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            log.error(f"POST {url} failed: {e}")
            failure = TransportError(f"POST {url} failed: {e}")
            if raise_errors:
                raise failure from e
            yield _error_event(failure)
            return

        try:
            if not resp.ok:
                failure = self._http_error(resp)
                if raise_errors:
                    raise failure
                yield _error_event(failure)
                return
            decoder = SSEDecoder()
            try:
                for chunk in resp.iter_content(chunk_size=None):
                    yield from decoder.feed(chunk)
            except requests.RequestException as e:
                log.error(f"Stream from {url} interrupted: {e}")
                failure = TransportError(f"Stream from {url} interrupted: {e}")
                if raise_errors:
                    raise failure from e
                yield _error_event(failure)
                return
            yield from decoder.flush()
        finally:
            resp.close()

    # ========================================================================
    # Stored responses and models
    # ========================================================================

    def get(self, response_id: str, include: Optional[List[str]] = None) -> Result[Response]:
        """Fetch a stored response by id."""
        params = {"include[]": include} if include else None
        result = self.request("GET", f"responses/{response_id}", params=params)
        if not result.ok:
            return Result.failure(result.error)
        return Result.success(Response.from_body(result.value))

    def delete(self, response_id: str) -> Result[Dict[str, Any]]:
        return self.request("DELETE", f"responses/{response_id}")

    def list_input_items(
        self,
        response_id: str,
        before: Optional[str] = None,
        after: Optional[str] = None,
        limit: Optional[int] = None,
        order: Optional[str] = None,
    ) -> Result[Dict[str, Any]]:
        """The input items of a stored response (a list object with `data`)."""
        params = {
            key: value
            for key, value in {"before": before, "after": after, "limit": limit, "order": order}.items()
            if value is not None
        }
        return self.request("GET", f"responses/{response_id}/input_items", params=params or None)

    def list_models(self, match: str = "") -> Result[List[Dict[str, Any]]]:
        """Available models, optionally only those whose id contains `match`."""
        result = self.request("GET", "models")
        if not result.ok:
            return Result.failure(result.error)
        models = result.value.get("data") or []
        return Result.success([m for m in models if match in (m.get("id") or "")])


# ============================================================================
# Default client
# ============================================================================

_default_client: Optional[ResponsesClient] = None


def default_client() -> ResponsesClient:
    """The shared client used by the module-level helpers, built on first use."""
    global _default_client
    if _default_client is None:
        _default_client = ResponsesClient()
    return _default_client


def create(input: Any = None, **options) -> Result[Response]:
    return default_client().create(input, **options)


def stream(input: Any = None, **options) -> Generator[SSEEvent, None, None]:
    return default_client().stream(input, **options)
