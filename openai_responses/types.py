"""
Responses API type definitions
Input items, the processed Response, and the Result wrapper returned by calls.
"""
import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from . import helpers
from .errors import ResponsesError
from .pricing import Cost, calculate_cost, zero_cost

T = TypeVar("T")

# ============================================================================
# Enums
# ============================================================================

class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    DEVELOPER = "developer"

# ============================================================================
# Content Types
# ============================================================================

@dataclass
class InputTextContent:
    text: str
    type: str = "input_text"

@dataclass
class OutputTextContent:
    text: str
    type: str = "output_text"
    annotations: List[Dict[str, Any]] = field(default_factory=list)

# ============================================================================
# Input Items
# ============================================================================

@dataclass
class MessageItem:
    """A message in the conversation."""
    role: Union[Role, str]
    content: List[Union[InputTextContent, OutputTextContent, Dict[str, Any]]]
    id: Optional[str] = None
    type: str = "message"

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "type": self.type,
            "role": self.role.value if isinstance(self.role, Role) else self.role,
            "content": [c if isinstance(c, dict) else asdict(c) for c in self.content],
        }
        if self.id:
            d["id"] = self.id
        return d

@dataclass
class FunctionCallOutputItem:
    """Result from executing a function the model asked for."""
    call_id: str
    output: str
    type: str = "function_call_output"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "call_id": self.call_id,
            "output": self.output,
        }

# ============================================================================
# Responses
# ============================================================================

@dataclass
class FunctionCall:
    """A function call requested by the model, arguments already decoded."""
    name: str
    call_id: str
    arguments: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "call_id": self.call_id, "arguments": self.arguments}

@dataclass
class Response:
    """
    A completed response.

    `body` is the raw JSON from the API. `text`, `parsed`, `function_calls`
    and `cost` are derived from it by from_body(). Problems decoding
    structured output or function arguments land in `parse_error` instead of
    being raised.
    """
    body: Dict[str, Any]
    text: str = ""
    parsed: Any = None
    parse_error: Optional[Dict[str, Any]] = None
    function_calls: List[FunctionCall] = field(default_factory=list)
    cost: Cost = field(default_factory=zero_cost)

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> "Response":
        response = cls(body=body or {})
        response.text = helpers.output_text(response.body)

        if helpers.is_structured(response.body):
            parsed, error = helpers.extract_json(response.text)
            if error is None:
                response.parsed = parsed
            else:
                response._add_parse_error("json", error)

        calls, errors = helpers.extract_function_calls(response.body)
        response.function_calls = [FunctionCall(**call) for call in calls]
        if errors:
            response._add_parse_error("function_calls", errors)

        response.cost = calculate_cost(response.model, response.usage)
        return response

    def _add_parse_error(self, key: str, error: Any):
        if self.parse_error is None:
            self.parse_error = {}
        self.parse_error[key] = error

    @property
    def id(self) -> Optional[str]:
        return self.body.get("id")

    @property
    def model(self) -> Optional[str]:
        return self.body.get("model")

    @property
    def status(self) -> Optional[str]:
        return helpers.status(self.body)

    @property
    def usage(self) -> Optional[Dict[str, Any]]:
        return helpers.token_usage(self.body)

    def has_refusal(self) -> bool:
        return helpers.has_refusal(self.body)

    def refusal_message(self) -> Optional[str]:
        return helpers.refusal_message(self.body)

@dataclass
class Result(Generic[T]):
    """
    Outcome of a call that talks to the API.

    Exactly one of `value` / `error` is meaningful. unwrap() returns the value
    or raises the error.
    """
    value: Optional[T] = None
    error: Optional[ResponsesError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ResponsesError) -> "Result[T]":
        return cls(error=error)

# ============================================================================
# Helpers
# ============================================================================

def user_message(text: str) -> MessageItem:
    """Create a user message item."""
    return MessageItem(role=Role.USER, content=[InputTextContent(text=text)])

def system_message(text: str) -> MessageItem:
    """Create a system message item."""
    return MessageItem(role=Role.SYSTEM, content=[InputTextContent(text=text)])

def developer_message(text: str) -> MessageItem:
    """Create a developer message item."""
    return MessageItem(role=Role.DEVELOPER, content=[InputTextContent(text=text)])

def assistant_message(text: str) -> MessageItem:
    """Create an assistant message item."""
    return MessageItem(role=Role.ASSISTANT, content=[OutputTextContent(text=text)])

def function_output(call_id: str, result: Any) -> FunctionCallOutputItem:
    """Create a function call output item. Non-string results are JSON-encoded."""
    text = result if isinstance(result, str) else json.dumps(result, default=str)
    return FunctionCallOutputItem(call_id=call_id, output=text)
