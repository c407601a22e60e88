"""
Accessors over raw response bodies, plus input builders.

Every accessor takes the decoded JSON body of a response (a dict) and
tolerates missing keys.
"""
import base64
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

log = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    ".png": "image/png",
    ".jpeg": "image/jpeg",
    ".jpg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

ImageSource = Union[str, Tuple[str, str]]


def _output_items(body: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not isinstance(body, dict):
        return []
    output = body.get("output")
    if not isinstance(output, list):
        return []
    return [item for item in output if isinstance(item, dict)]


def _contents(item: Dict[str, Any]) -> List[Dict[str, Any]]:
    content = item.get("content")
    if not isinstance(content, list):
        return []
    return [c for c in content if isinstance(c, dict)]


def output_text(body: Optional[Dict[str, Any]]) -> str:
    """All assistant `output_text` content, joined with newlines."""
    texts = []
    for item in _output_items(body):
        if item.get("type") != "message" or item.get("role") != "assistant":
            continue
        for content in _contents(item):
            if content.get("type") == "output_text" and isinstance(content.get("text"), str):
                texts.append(content["text"])
    return "\n".join(texts)


def token_usage(body: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return body.get("usage") if isinstance(body, dict) else None


def status(body: Optional[Dict[str, Any]]) -> Optional[str]:
    return body.get("status") if isinstance(body, dict) else None


def has_refusal(body: Optional[Dict[str, Any]]) -> bool:
    return any(
        content.get("type") == "refusal"
        for item in _output_items(body)
        for content in _contents(item)
    )


def refusal_message(body: Optional[Dict[str, Any]]) -> Optional[str]:
    for item in _output_items(body):
        for content in _contents(item):
            if content.get("type") == "refusal" and content.get("refusal") is not None:
                return content["refusal"]
    return None


def extract_function_calls(body: Optional[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Pull `function_call` items out of a response.

    Returns (calls, errors). Each call is {"name", "call_id", "arguments"}
    with arguments decoded from JSON. A call whose arguments do not decode
    becomes an error string instead; the other calls are still returned.
    """
    calls = []
    errors = []
    for item in _output_items(body):
        if item.get("type") != "function_call":
            continue
        name = item.get("name")
        call_id = item.get("call_id")
        raw = item.get("arguments")
        try:
            arguments = raw if isinstance(raw, dict) else json.loads(raw or "{}")
        except (TypeError, ValueError) as e:
            errors.append(f"Function call '{name}' ({call_id}): {e}")
            continue
        calls.append({"name": name, "call_id": call_id, "arguments": arguments})
    return calls, errors


def is_structured(body: Optional[Dict[str, Any]]) -> bool:
    """True when the response echoes a JSON schema in `text.format`."""
    if not isinstance(body, dict):
        return False
    text = body.get("text") or {}
    fmt = text.get("format") if isinstance(text, dict) else None
    return isinstance(fmt, dict) and fmt.get("schema") is not None


def extract_json(text: str) -> Tuple[Any, Optional[str]]:
    """Decode structured output text. Returns (parsed, error_message)."""
    try:
        return json.loads(text), None
    except (TypeError, ValueError) as e:
        return None, str(e)


# ============================================================================
# Input builders
# ============================================================================

def input_message(
    text: str,
    images: Optional[Union[ImageSource, Sequence[ImageSource]]] = None,
    detail: Optional[str] = None,
    role: str = "user",
) -> Dict[str, Any]:
    """
    Build a message with text and optional images for vision models.

    Images may be URLs, data URLs, local file paths (sent inline as base64),
    or (source, detail) tuples overriding `detail` for that image.

        input_message("What is in this image?", "https://example.com/cat.jpg")
        input_message("Compare these", [("a.png", "low"), "b.png"], detail="high")
    """
    content: List[Dict[str, Any]] = [{"type": "input_text", "text": text}]
    if images is not None:
        if isinstance(images, (str, tuple)):
            images = [images]
        for image in images:
            content.append(_image_content(image, detail))
    return {"role": role, "content": content}


def _image_content(image: ImageSource, default_detail: Optional[str]) -> Dict[str, Any]:
    if isinstance(image, tuple):
        source, detail = image
    else:
        source, detail = image, default_detail
    entry = {"type": "input_image", "image_url": _image_url(source)}
    if detail:
        entry["detail"] = detail
    return entry


def _image_url(source: str) -> str:
    if source.startswith(("http://", "https://", "data:")):
        return source
    path = Path(source)
    if not path.is_file():
        raise ValueError(f"Image source '{source}' is not a valid URL or existing file")
    mime_type = IMAGE_MIME_TYPES.get(path.suffix.lower())
    if mime_type is None:
        supported = ", ".join(IMAGE_MIME_TYPES)
        raise ValueError(f"Unsupported image format: {path.suffix}. Supported formats: {supported}")
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    log.debug(f"Inlined image {source} ({mime_type})")
    return f"data:{mime_type};base64,{encoded}"
