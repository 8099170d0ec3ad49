"""
=============================================================================
DISPATCHER CONFIGURATION
=============================================================================

Centralized settings for a Dispatcher instance.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httpdispatch GET / --log-level DEBUG             │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── DISPATCH_LOG_LEVEL=DEBUG python -m httpdispatch GET /      │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The route table and the availability flag belong to the long-lived
Dispatcher; everything here is read once when the Dispatcher is built.

=============================================================================
"""

import json
import logging
import os
from dataclasses import dataclass


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class DispatcherConfig:
    """
    Configuration for a Dispatcher.

    Development:
        DispatcherConfig(log_level="DEBUG", json_pretty=True)

    Production:
        DispatcherConfig.from_env()
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG shows every lifecycle transition; INFO shows outcomes only."""

    log_format: str = "text"
    """'text' for humans, 'json' for log aggregators."""

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST HANDLING
    # ─────────────────────────────────────────────────────────────────────

    verb_override_field: str = "verb"
    """Form field that overrides the method of a POST request."""

    start_available: bool = True
    """Initial value of the availability flag (False = start "down")."""

    # ─────────────────────────────────────────────────────────────────────
    # RESPONSE RENDERING
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "httpdispatch/1.0"
    """Value of the Server header when a response is serialized."""

    default_charset: str = "utf-8"
    """Charset used to encode text and JSON bodies."""

    json_pretty: bool = False
    """Indent JSON bodies produced from dict/list handler results."""

    @classmethod
    def from_env(cls) -> "DispatcherConfig":
        """
        Create configuration from environment variables.

        DISPATCH_LOG_LEVEL     Logging level (default: INFO)
        DISPATCH_LOG_FORMAT    text | json (default: text)
        DISPATCH_SERVER_NAME   Server header (default: httpdispatch/1.0)
        DISPATCH_VERB_FIELD    Verb override field (default: verb)
        DISPATCH_AVAILABLE     Start available? (default: 1)
        DISPATCH_JSON_PRETTY   Indent JSON bodies? (default: 0)
        """
        return cls(
            log_level=os.getenv("DISPATCH_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("DISPATCH_LOG_FORMAT", "text").lower(),
            server_name=os.getenv("DISPATCH_SERVER_NAME", "httpdispatch/1.0"),
            verb_override_field=os.getenv("DISPATCH_VERB_FIELD", "verb"),
            start_available=os.getenv("DISPATCH_AVAILABLE", "1").lower() in _TRUE_VALUES,
            json_pretty=os.getenv("DISPATCH_JSON_PRETTY", "0").lower() in _TRUE_VALUES,
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by the Dispatcher constructor, so a bad value fails at
        startup rather than on the first request.
        """
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}. Must be one of {LOG_LEVELS}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}. Must be 'text' or 'json'")

        if not self.verb_override_field:
            raise ValueError("verb_override_field must not be empty")

        if not self.server_name:
            raise ValueError("server_name must not be empty")

        try:
            "".encode(self.default_charset)
        except LookupError:
            raise ValueError(f"Unknown charset: {self.default_charset}")


# =============================================================================
# LOGGING SETUP
# =============================================================================

class JSONFormatter(logging.Formatter):
    """One JSON object per line: time, level, logger, message."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(config: DispatcherConfig) -> None:
    """
    Configure logging from ``config``.

    Sets up the root handler (if none exists yet) and the level of the
    ``httpdispatch`` logger namespace.
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logging.basicConfig(level=level, handlers=[handler])
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    logging.getLogger("httpdispatch").setLevel(level)
