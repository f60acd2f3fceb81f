import json
import os
from dataclasses import dataclass, field, fields
from typing import Dict, List, Any, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_CONFIG_PATH = 'config/app_config.json'


@dataclass
class ClientConfig:
    """Settings for URL construction, transport and debounce behaviour."""
    debounce_ms: int = 300
    base_host: str = 'https://www.reddit.com'
    listing_suffix: str = '.json'
    user_agent: str = 'RedditLens/1.0'
    request_timeout: float = 20
    debug_logging: bool = False
    start_path: str = '/'
    listing_modes: List[str] = field(default_factory=lambda: ['hot', 'new', 'top', 'rising'])

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    def validate(self) -> None:
        """Validate configuration values."""
        if self.debounce_ms < 0:
            raise ValueError("debounce_ms must be non-negative")
        if not self.base_host.startswith(('http://', 'https://')):
            raise ValueError("base_host must include an http(s) scheme")
        if not self.listing_suffix.startswith('.'):
            raise ValueError("listing_suffix must start with '.'")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")


ENV_OVERRIDES = {
    'debounce_ms': ('REDDIT_LENS_DEBOUNCE_MS', int),
    'base_host': ('REDDIT_LENS_BASE_HOST', str),
    'listing_suffix': ('REDDIT_LENS_LISTING_SUFFIX', str),
    'user_agent': ('REDDIT_USER_AGENT', str),
    'request_timeout': ('REDDIT_LENS_TIMEOUT', float),
    'debug_logging': ('REDDIT_LENS_DEBUG', lambda v: v.lower() in ('true', '1', 'yes', 'on')),
}


def load_config(file_path: str) -> Dict[str, Any]:
    """Load configuration from JSON file."""
    with open(file_path, 'r') as f:
        return json.load(f)


def load_app_config(file_path: Optional[str] = None) -> ClientConfig:
    """Build the client config from defaults, the JSON file and environment overrides."""
    file_path = file_path or os.getenv('REDDIT_LENS_CONFIG', DEFAULT_CONFIG_PATH)
    values = load_config(file_path) if os.path.exists(file_path) else {}

    known = {f.name for f in fields(ClientConfig)}
    settings = {key: value for key, value in values.items() if key in known}
    for name, (env_key, convert) in ENV_OVERRIDES.items():
        raw = os.getenv(env_key)
        if raw is not None:
            settings[name] = convert(raw)

    config = ClientConfig(**settings)
    config.validate()
    return config


def is_debug_logging_enabled(config: Optional[ClientConfig] = None) -> bool:
    """Check if debug logging is enabled in app config."""
    config = config or load_app_config()
    return config.debug_logging
