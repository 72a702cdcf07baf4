"""
Taxi Simulator Configuration
============================

This module handles configuration loading for the hub and the simulator.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    TAXISIM_HUB_URL            -> hub.url
    TAXISIM_BROADCAST_INTERVAL -> hub.broadcast_interval_seconds
    TAXISIM_TICK_INTERVAL      -> streamer.tick_interval_seconds
    TAXISIM_ROUTE_URL          -> routing.url
    GOOGLE_MAPS_API_KEY        -> routing.google_maps_api_key
    TAXISIM_UUID_SERVICE_URL   -> identity.service_url
    TAXISIM_RECONNECT_BACKOFF_MS -> client.reconnect_backoff_ms
    TAXISIM_PORT               -> server.port
    PORT                       -> server.port (takes precedence)
    TAXISIM_LOG_LEVEL          -> logging.level

Example:
    from taxi_simulator.config import settings

    print(settings.hub.url)
    print(settings.streamer.tick_interval_seconds)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class HubConfig(BaseModel):
    """Feed hub configuration."""

    url: str = Field(
        default="ws://127.0.0.1:4200",
        description="WebSocket base URL of the hub (simulator side)",
    )
    broadcast_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Period of feed broadcasts to clients",
    )
    include_heading: bool = Field(
        default=False,
        description="Append the heading to each feed record",
    )
    open_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="WebSocket handshake timeout",
    )


class StreamerConfig(BaseModel):
    """Position streamer configuration."""

    tick_interval_seconds: float = Field(
        default=1.7,
        gt=0,
        description="Period between two position messages of a taxi",
    )


class RoutingConfig(BaseModel):
    """Route lookup configuration."""

    url: str = Field(
        default="http://127.0.0.1:4200",
        description="HTTP base URL serving GET /route",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, description="Request timeout")
    precision: int = Field(default=5, ge=1, le=10, description="Polyline precision")
    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="Directions API key used by the hub's /route endpoint",
    )


class IdentityConfig(BaseModel):
    """Session identifier configuration."""

    service_url: Optional[str] = Field(
        default=None,
        description="Remote UUID generator; local uuid4 when unset",
    )
    timeout_seconds: float = Field(default=5.0, gt=0, description="Request timeout")


class ClientConfig(BaseModel):
    """Consumer reconnection configuration."""

    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=4200, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the taxi simulator.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    hub: HubConfig = Field(default_factory=HubConfig)
    streamer: StreamerConfig = Field(default_factory=StreamerConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        config_path = os.environ.get("TAXISIM_CONFIG")
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Hub settings
    if env_hub := os.environ.get("TAXISIM_HUB_URL"):
        config_data.setdefault("hub", {})["url"] = env_hub
    if env_bcast := os.environ.get("TAXISIM_BROADCAST_INTERVAL"):
        config_data.setdefault("hub", {})["broadcast_interval_seconds"] = float(env_bcast)

    # Streamer settings
    if env_tick := os.environ.get("TAXISIM_TICK_INTERVAL"):
        config_data.setdefault("streamer", {})["tick_interval_seconds"] = float(env_tick)

    # Routing settings
    if env_route := os.environ.get("TAXISIM_ROUTE_URL"):
        config_data.setdefault("routing", {})["url"] = env_route
    if env_key := os.environ.get("GOOGLE_MAPS_API_KEY"):
        config_data.setdefault("routing", {})["google_maps_api_key"] = env_key

    # Identity settings
    if env_uuid := os.environ.get("TAXISIM_UUID_SERVICE_URL"):
        config_data.setdefault("identity", {})["service_url"] = env_uuid

    # Client settings
    if env_backoff := os.environ.get("TAXISIM_RECONNECT_BACKOFF_MS"):
        config_data.setdefault("client", {})["reconnect_backoff_ms"] = int(env_backoff)

    # Server settings (PORT wins, as on most PaaS runtimes)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("TAXISIM_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("TAXISIM_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
