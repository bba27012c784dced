"""Configuration system for the render service.

This module loads service configuration from YAML, validates it with
pydantic and applies environment-specific overrides. Nothing is cached at
module level: callers construct a ``RenderConfigManager`` and pass the
resulting objects to the components they build.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from .capture.browser_factory import BrowserConfig, BrowserEngineType
from .capture.coordinator import MAX_CONTENT_BYTES, RequestCoordinatorConfig
from .capture.readiness import LoaderAbsenceProbe
from .presets import DEFAULT_PRESET, PresetRegistry

logger = logging.getLogger(__name__)


ENVIRONMENT_ENV = "RENDER_SERVICE_ENV"
CONFIG_PATH_ENV = "RENDER_SERVICE_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "render.yaml"


class ServiceSettings(BaseModel):
    """HTTP service settings."""

    name: str = Field(default="Render Service", description="Service name reported by health checks")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, ge=1, le=65535)
    max_content_bytes: int = Field(default=MAX_CONTENT_BYTES, ge=1)


class RenderConfig(BaseModel):
    """Root configuration for the render service."""

    environment: str = Field(default="production", description="Environment name")
    browser: Dict[str, Any] = Field(default_factory=dict, description="Browser configuration")
    coordinator: Dict[str, Any] = Field(default_factory=dict, description="Coordinator configuration")
    readiness_probe: Dict[str, Any] = Field(
        default_factory=dict,
        description="Loader-absence probe selectors and thresholds"
    )
    presets: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Overrides of built-in presets and additional presets"
    )
    service: Dict[str, Any] = Field(default_factory=dict, description="HTTP service settings")
    logging: Dict[str, Any] = Field(default_factory=dict, description="Logging settings")
    environments: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Environment-specific overrides"
    )

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        valid_environments = {'production', 'staging', 'development', 'test'}
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    def _section(self, name: str) -> Dict[str, Any]:
        """Get a section with environment-specific overrides applied."""
        config = dict(getattr(self, name))
        env_config = self.environments.get(self.environment, {})
        if name in env_config:
            config.update(env_config[name])
        return config

    def get_browser_config(self) -> BrowserConfig:
        """Get browser configuration with environment overrides applied."""
        config = self._section('browser')

        return BrowserConfig(
            engine=getattr(BrowserEngineType, str(config.get('engine', 'chromium')).upper()),
            headless=config.get('headless', True),
            executable_path=config.get('executable_path'),
            args=config.get('args'),
            viewport={
                'width': config.get('window_width', 1920),
                'height': config.get('window_height', 1080),
            },
            user_agent=config.get('user_agent'),
            locale=config.get('locale'),
            timezone=config.get('timezone'),
            ignore_https_errors=config.get('ignore_https_errors', True),
            java_script_enabled=config.get('java_script_enabled', True),
        )

    def get_preset_registry(self) -> PresetRegistry:
        return PresetRegistry.from_overrides(self.presets)

    def get_readiness_probe(self) -> LoaderAbsenceProbe:
        return LoaderAbsenceProbe(**self._section('readiness_probe'))

    def get_coordinator_config(self) -> RequestCoordinatorConfig:
        """Get coordinator configuration with environment overrides applied."""
        config = self._section('coordinator')

        return RequestCoordinatorConfig(
            browser_config=self.get_browser_config(),
            job_timeout_ms=config.get('job_timeout_ms', 120000),
            presets=self.get_preset_registry(),
            default_preset=config.get('default_preset', DEFAULT_PRESET),
            max_content_bytes=self.get_service_settings().max_content_bytes,
            readiness_probe=self.get_readiness_probe(),
        )

    def get_service_settings(self) -> ServiceSettings:
        return ServiceSettings(**self._section('service'))

    @property
    def log_level(self) -> str:
        return str(self._section('logging').get('level', 'INFO')).upper()


class RenderConfigManager:
    """Manager for render configuration loading and caching."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to config YAML file. Defaults to RENDER_SERVICE_CONFIG,
                then config/render.yaml
        """
        self._explicit_path = config_path is not None or CONFIG_PATH_ENV in os.environ
        if config_path is None:
            config_path = os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)

        self.config_path = Path(config_path)
        self._config: Optional[RenderConfig] = None
        self._loaded_env: Optional[str] = None

    def load_config(self, force_reload: bool = False) -> RenderConfig:
        """Load configuration from YAML file.

        A missing default file yields built-in defaults; a missing file that
        was requested explicitly is an error.

        Args:
            force_reload: Force reload even if already cached

        Returns:
            Loaded and validated configuration

        Raises:
            FileNotFoundError: If an explicitly requested file doesn't exist
            yaml.YAMLError: If YAML is invalid
            ValueError: If configuration validation fails
        """
        current_env = os.environ.get(ENVIRONMENT_ENV, 'production')

        if self._config is not None and not force_reload and current_env == self._loaded_env:
            return self._config

        config_data: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise yaml.YAMLError(f"Invalid YAML in {self.config_path}: {e}")
        elif self._explicit_path:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        else:
            logger.info(f"No configuration file at {self.config_path}, using defaults")

        if current_env != 'production':
            config_data['environment'] = current_env

        try:
            self._config = RenderConfig(**config_data)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}")

        self._loaded_env = current_env
        return self._config

    @property
    def config(self) -> RenderConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    @property
    def environment(self) -> str:
        return self.config.environment

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'
