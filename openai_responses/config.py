"""
Client configuration.

Values are resolved in this order: explicit arguments, the JSON config file
(openai_responses.json by default), environment variables, built-in defaults.

Config file keys:
  - openai_api_key
  - api_base
  - timeout
  - default_model (null to require an explicit model on every request)
"""
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .errors import ConfigError

log = logging.getLogger(__name__)

CONFIG_PATH = Path("openai_responses.json")
DEFAULT_API_BASE = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 60
DEFAULT_MODEL = "gpt-4.1-mini"

API_KEY_ENV = "OPENAI_API_KEY"
API_BASE_ENV = "OPENAI_BASE_URL"

_UNSET: Any = object()


def load_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Read the JSON config file.

    A missing default file is fine (empty config); a missing file that was
    asked for explicitly, or one that is not valid JSON, raises ConfigError.
    """
    config_path = Path(path) if path else CONFIG_PATH
    if not config_path.exists():
        if path:
            raise ConfigError(f"Config file not found: {config_path}")
        return {}
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Could not read config file {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a JSON object")
    log.debug(f"Loaded config from {config_path}")
    return data


@dataclass
class Config:
    api_key: Optional[str] = None
    api_base: str = DEFAULT_API_BASE
    timeout: float = DEFAULT_TIMEOUT
    default_model: Optional[str] = DEFAULT_MODEL

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "Config":
        """Create a Config from a dict using the config file's key names."""
        return cls.resolve(file_config=config)

    @classmethod
    def resolve(
        cls,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        default_model: Optional[str] = _UNSET,
        path: Optional[Union[str, Path]] = None,
        file_config: Optional[Dict[str, Any]] = None,
    ) -> "Config":
        if file_config is None:
            file_config = load_config(path)

        if default_model is _UNSET:
            default_model = file_config.get("default_model", DEFAULT_MODEL)

        return cls(
            api_key=api_key or file_config.get("openai_api_key") or os.environ.get(API_KEY_ENV),
            api_base=(
                api_base
                or file_config.get("api_base")
                or os.environ.get(API_BASE_ENV)
                or DEFAULT_API_BASE
            ).rstrip("/"),
            timeout=timeout or file_config.get("timeout") or DEFAULT_TIMEOUT,
            default_model=default_model,
        )

    def require_api_key(self) -> str:
        """The API key, or ConfigError if none was configured."""
        if not self.api_key:
            raise ConfigError(
                f"OpenAI API key not provided. Set the {API_KEY_ENV} environment "
                f"variable, add openai_api_key to {CONFIG_PATH}, or pass api_key."
            )
        return self.api_key
