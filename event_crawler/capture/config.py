"""Configuration system for event scans.

This module provides configuration management for scan engine settings,
including YAML loading, validation, and environment-specific overrides.
The active environment is taken from ``EVENT_CRAWLER_ENV``.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional, Union
from pydantic import BaseModel, Field, field_validator

from .browser_factory import BrowserConfig, BrowserEngineType
from .engine import ScanEngineConfig
from .page_session import WaitStrategy


ENV_VAR = 'EVENT_CRAWLER_ENV'
DEFAULT_ENVIRONMENT = 'production'


class ScanSettings(BaseModel):
    """Root configuration for the scan system."""

    environment: str = Field(default=DEFAULT_ENVIRONMENT, description="Environment name")
    browser: Dict[str, Any] = Field(default_factory=dict, description="Browser configuration")
    engine: Dict[str, Any] = Field(default_factory=dict, description="Engine configuration")
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
        config = dict(getattr(self, name))
        env_config = self.environments.get(self.environment, {})
        if name in env_config:
            config.update(env_config[name])
        return config

    def get_browser_config(self) -> BrowserConfig:
        """Get browser configuration with environment overrides applied."""
        config = self._section('browser')

        engine = str(config.get('engine', 'chromium')).upper()
        if not hasattr(BrowserEngineType, engine):
            raise ValueError(f"Unsupported browser engine: {config.get('engine')}")

        return BrowserConfig(
            engine=getattr(BrowserEngineType, engine),
            headless=config.get('headless', True),
            viewport={'width': config.get('window_width', 1366), 'height': config.get('window_height', 768)},
            user_agent=config.get('user_agent'),
            extra_headers=config.get('extra_headers'),
            timezone=config.get('timezone'),
            locale=config.get('locale', 'en-US'),
            ignore_https_errors=config.get('ignore_https_errors', False),
        )

    def get_engine_config(self) -> ScanEngineConfig:
        """Get engine configuration with environment overrides applied."""
        config = self._section('engine')

        return ScanEngineConfig(
            browser_config=self.get_browser_config(),
            wait_strategy=config.get('wait_strategy', WaitStrategy.NETWORKIDLE),
            navigation_timeout_ms=config.get('navigation_timeout_ms', 30000),
            settle_ms=config.get('settle_ms', 3000),
            extraction_timeout_ms=config.get('extraction_timeout_ms', 10000),
            request_deadline_s=config.get('request_deadline_s', 60.0),
            queue_name=config.get('queue_name', 'dataLayer'),
            function_name=config.get('function_name', 'gtag'),
            max_payload_depth=config.get('max_payload_depth', 10),
        )


class ScanConfigManager:
    """Manager for scan configuration loading and caching."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to scan config YAML file. Defaults to config/scan.yaml
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "scan.yaml"

        self.config_path = Path(config_path)
        self._config: Optional[ScanSettings] = None
        self._loaded_env = None

    def load_config(self, force_reload: bool = False) -> ScanSettings:
        """Load configuration from YAML file.

        A missing file yields the built-in defaults.

        Args:
            force_reload: Force reload even if already cached

        Returns:
            Loaded and validated configuration

        Raises:
            yaml.YAMLError: If YAML is invalid
            ValueError: If configuration validation fails
        """
        current_env = os.environ.get(ENV_VAR, DEFAULT_ENVIRONMENT)

        if self._config is not None and not force_reload and current_env == self._loaded_env:
            return self._config

        config_data: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise yaml.YAMLError(f"Invalid YAML in {self.config_path}: {e}")

        if current_env != DEFAULT_ENVIRONMENT:
            config_data['environment'] = current_env

        try:
            self._config = ScanSettings(**config_data)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        self._loaded_env = current_env
        return self._config

    @property
    def config(self) -> ScanSettings:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    @property
    def environment(self) -> str:
        """Get current environment."""
        return self.config.environment


_config_manager: Optional[ScanConfigManager] = None


def get_config(config_path: Optional[Union[str, Path]] = None) -> ScanConfigManager:
    """Get global scan configuration manager.

    Args:
        config_path: Path to config file (only used on first call)

    Returns:
        Global ScanConfigManager instance
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ScanConfigManager(config_path)
    return _config_manager


def reset_config() -> None:
    """Drop the cached global configuration manager."""
    global _config_manager
    _config_manager = None


def create_engine_config(config_path: Optional[Union[str, Path]] = None) -> ScanEngineConfig:
    """Create engine configuration from YAML file.

    Args:
        config_path: Path to scan config YAML file

    Returns:
        Configured ScanEngineConfig instance
    """
    return get_config(config_path).config.get_engine_config()
