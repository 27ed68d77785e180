"""
Configuration Management

Transport configuration is an immutable value handed to the chunker and
the orchestrators; there is no process-wide chunk size to mutate.

Configuration priority (highest to lowest) when using load_config():
1. Environment variables (DISFILE_*)
2. Config file (JSON)
3. Default values

The library never reads the environment on its own: from_env(),
from_file() and load_config() run only when the caller asks.
"""

import os
import json
import dataclasses
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from dotenv import find_dotenv, load_dotenv

from .errors import ValidationError

# Keeps each attachment under the webhook's upload ceiling
DEFAULT_CHUNK_SIZE = 20 * 1024 * 1024  # 20 MiB

# Seconds between successive piece transfers
DEFAULT_PACING_DELAY = 3.0


@dataclass(frozen=True)
class TransportConfig:
    """
    Webhook transport configuration.

    Attributes:
        endpoint: Webhook URL pieces and manifests are posted to
        chunk_size: Maximum piece size in bytes
        max_concurrent_uploads: Piece uploads allowed in flight at once
        max_concurrent_downloads: Piece downloads allowed in flight at once
            (1 means strictly sequential)
        pacing_delay: Minimum seconds between the starts of two piece transfers
        request_timeout: Per-request HTTP timeout in seconds
        log_level: Level used by setup_logging() when none is given
    """
    endpoint: str
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_concurrent_uploads: int = 4
    max_concurrent_downloads: int = 1
    pacing_delay: float = DEFAULT_PACING_DELAY
    request_timeout: float = 60.0
    log_level: str = 'INFO'

    def __post_init__(self):
        endpoint = (self.endpoint or '').strip()
        parsed = urlparse(endpoint)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValidationError(f"Invalid webhook endpoint: {self.endpoint!r}")
        object.__setattr__(self, 'endpoint', endpoint.rstrip('/'))

        for name in ('chunk_size', 'max_concurrent_uploads', 'max_concurrent_downloads'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValidationError(f"{name} must be a positive integer, got {value!r}")

        for name in ('pacing_delay', 'request_timeout'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ValidationError(f"{name} must be a non-negative number, got {value!r}")

    def replace(self, **changes) -> 'TransportConfig':
        """Return a copy with some fields changed."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, endpoint: Optional[str] = None) -> 'TransportConfig':
        """Load configuration from environment variables (and a .env file)."""
        load_dotenv(find_dotenv(usecwd=True))

        endpoint = endpoint or os.getenv('DISFILE_ENDPOINT', '')
        defaults = cls.__dataclass_fields__

        try:
            return cls(
                endpoint=endpoint,
                chunk_size=int(os.getenv(
                    'DISFILE_CHUNK_SIZE', defaults['chunk_size'].default)),
                max_concurrent_uploads=int(os.getenv(
                    'DISFILE_MAX_CONCURRENT_UPLOADS', defaults['max_concurrent_uploads'].default)),
                max_concurrent_downloads=int(os.getenv(
                    'DISFILE_MAX_CONCURRENT_DOWNLOADS', defaults['max_concurrent_downloads'].default)),
                pacing_delay=float(os.getenv(
                    'DISFILE_PACING_DELAY', defaults['pacing_delay'].default)),
                request_timeout=float(os.getenv(
                    'DISFILE_REQUEST_TIMEOUT', defaults['request_timeout'].default)),
                log_level=os.getenv('DISFILE_LOG_LEVEL', defaults['log_level'].default),
            )
        except ValueError as e:
            raise ValidationError(f"Invalid DISFILE_* environment value: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> 'TransportConfig':
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise ValidationError(f"Config file not found: {path}")

        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Config file {path} is not valid JSON: {e}") from e

        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValidationError(f"Unknown config keys in {path}: {sorted(unknown)}")

        return cls(**data)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return dataclasses.asdict(self)

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


_ENV_KEYS = {
    'endpoint': 'DISFILE_ENDPOINT',
    'chunk_size': 'DISFILE_CHUNK_SIZE',
    'max_concurrent_uploads': 'DISFILE_MAX_CONCURRENT_UPLOADS',
    'max_concurrent_downloads': 'DISFILE_MAX_CONCURRENT_DOWNLOADS',
    'pacing_delay': 'DISFILE_PACING_DELAY',
    'request_timeout': 'DISFILE_REQUEST_TIMEOUT',
    'log_level': 'DISFILE_LOG_LEVEL',
}


def load_config(config_path: Optional[Path] = None) -> TransportConfig:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    load_dotenv(find_dotenv(usecwd=True))

    if config_path and Path(config_path).exists():
        config = TransportConfig.from_file(config_path)
    else:
        config = TransportConfig.from_env()

    # Only variables that are actually set take precedence
    env_config = TransportConfig.from_env(
        endpoint=os.getenv('DISFILE_ENDPOINT') or config.endpoint
    )
    overrides = {
        key: getattr(env_config, key)
        for key, env_name in _ENV_KEYS.items()
        if os.getenv(env_name) is not None
    }

    return config.replace(**overrides) if overrides else config
