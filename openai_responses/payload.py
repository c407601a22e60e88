"""
Request payload construction for POST /responses.
"""
import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from .config import DEFAULT_MODEL
from .errors import ConfigError
from .schema import build_output

log = logging.getLogger(__name__)


def _normalize_value(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return _normalize_value(value.to_dict())
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): _normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return value


def prepare_payload(
    options: Mapping[str, Any],
    default_model: Optional[str] = DEFAULT_MODEL,
) -> Dict[str, Any]:
    """
    Build the JSON body for a create request.

    `input` is always required. `model` is required when default_model is
    None, otherwise it falls back to default_model. A `schema` option (with
    optional `schema_name`) is turned into `text.format`. Options set to None
    are dropped; items with a to_dict() method are converted.
    """
    options = dict(options)
    schema = options.pop("schema", None)
    schema_name = options.pop("schema_name", None) or "data"

    payload = {
        str(key): _normalize_value(value)
        for key, value in options.items()
        if value is not None
    }

    if "input" not in payload:
        raise ConfigError("Missing required option: input")
    if "model" not in payload:
        if default_model is None:
            raise ConfigError("Missing required option: model")
        payload["model"] = default_model

    if schema is not None:
        text = dict(payload.get("text") or {})
        text["format"] = build_output(schema, name=schema_name)
        payload["text"] = text
        log.debug(f"Structured output requested as {schema_name!r}")

    tools = payload.get("tools")
    if isinstance(tools, dict):
        payload["tools"] = [tools]

    return payload


def follow_up_options(previous: Union[Any, Dict[str, Any]], options: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Options for a request continuing `previous` (a Response or a raw body).

    Sets previous_response_id and keeps the previous model unless the caller
    picked one.
    """
    body = previous.body if hasattr(previous, "body") else previous
    merged = dict(options)
    merged["previous_response_id"] = body.get("id")
    if merged.get("model") is None and body.get("model"):
        merged["model"] = body["model"]
    return merged
