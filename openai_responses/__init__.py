# openai_responses - thin client for the OpenAI Responses API
from .errors import ConfigError, DecodeError, ResponsesError, SchemaError, TransportError
from .config import Config, DEFAULT_MODEL
from .types import *
from .pricing import Cost, calculate_cost
from .sse import SSEDecoder, SSEEvent
from .stream import collect, delta, text_deltas
from .schema import build_function, build_output, nullable
from .payload import prepare_payload
from .client import ResponsesClient, create, stream
from .agent import FunctionCallLoop, ToolRegistry, call_functions, run, run_or_raise
