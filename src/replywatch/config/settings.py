"""Configuration management for replywatch.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (API keys). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Literal

import pydantic
import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from replywatch.domain.models import WatchConfig
from replywatch.errors import AutomationFailure, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/replywatch.yaml")

DEFAULT_SCREENSHOT_PREFIXES = ["Screenshot", "螢幕截圖", "截屏", "スクリーンショット"]


class StorageConfig(BaseModel):
    root: Path = Field(default=Path("~/.replywatch"))
    screenshots_dir: str = Field(default="screenshots")
    responses_dir: str = Field(default="responses")
    notes_dir: str = Field(default="notes")

    @property
    def screenshots_path(self) -> Path:
        return self.root.expanduser() / self.screenshots_dir

    @property
    def responses_path(self) -> Path:
        return self.root.expanduser() / self.responses_dir

    @property
    def notes_path(self) -> Path:
        return self.root.expanduser() / self.notes_dir

    def ensure_dirs(self) -> None:
        """Create the scratch directory tree if it does not exist yet."""
        for path in (self.screenshots_path, self.responses_path, self.notes_path):
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise AutomationFailure(
                    f"Cannot create scratch directory {path}: {e}", backend="storage"
                ) from e


class FileWatchConfig(WatchConfig):
    poll_interval: float = Field(default=2.0, gt=0)
    timeout: float = Field(default=180.0, gt=0)
    stabilization_count: int = Field(default=1, ge=1)
    stabilization_delay: float = Field(default=3.0, ge=0)
    extensions: list[str] = Field(default_factory=lambda: [".txt", ".md", ".json"])
    recursive: bool = Field(default=True)
    purge_max_age: float = Field(default=3600.0, gt=0)


class ClipboardConfig(WatchConfig):
    poll_interval: float = Field(default=0.5, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    stabilization_count: int = Field(default=1, ge=1)
    stabilization_delay: float = Field(default=0.0, ge=0)
    backend: Literal["pyperclip", "pasteboard"] = Field(default="pyperclip")


class ScreenConfig(WatchConfig):
    poll_interval: float = Field(default=5.0, gt=0)
    timeout: float = Field(default=120.0, gt=0)
    stabilization_count: int = Field(default=2, ge=1)
    stabilization_delay: float = Field(default=1.0, ge=0)
    capture_backend: Literal["mss", "screencapture", "shortcut"] = Field(default="mss")
    monitor_index: int = Field(default=1, ge=0, description="mss monitor index (0 = all)")
    hash_algorithm: str = Field(default="sha256")
    purge_max_age: float = Field(default=600.0, gt=0)
    desktop_dir: Path = Field(default=Path("~/Desktop"))
    screenshot_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCREENSHOT_PREFIXES)
    )
    crop_enabled: bool = Field(default=False)
    crop_x: int = Field(default=0, ge=0)
    crop_y: int = Field(default=0, ge=0)
    crop_width: int = Field(default=800, gt=0)
    crop_height: int = Field(default=600, gt=0)


class DelayConfig(BaseModel):
    wait: float = Field(default=10.0, gt=0, description="Seconds to wait before capturing")


class ExtractionConfig(BaseModel):
    enabled: bool = Field(default=True)
    engine: Literal["tesseract", "command", "vision"] = Field(default="tesseract")
    languages: str = Field(default="chi_tra+chi_sim+eng")
    command: list[str] = Field(default_factory=lambda: ["tesseract", "{image}", "stdout"])
    command_timeout: float = Field(default=60.0, gt=0)
    enhance: bool = Field(default=True, description="Binarize the image before Tesseract")
    vision_model: str = Field(default="gpt-4o")
    vision_base_url: str | None = Field(default=None)
    max_tokens: int = Field(default=1024, gt=0)
    min_line_length: int = Field(default=3, ge=0)
    prose_length: int = Field(default=20, ge=0)
    min_result_length: int = Field(default=50, ge=0)
    substantial_input_length: int = Field(default=100, ge=0)
    extra_skip_patterns: list[str] = Field(default_factory=list)


class AutomationConfig(BaseModel):
    backend: Literal["osascript", "http", "manual"] = Field(default="osascript")
    input_delay: float = Field(default=0.1, ge=0)
    activate_delay: float = Field(default=0.5, ge=0)
    http_base_url: str = Field(default="http://localhost:8080")
    http_timeout: float = Field(default=10.0, gt=0)


class OrchestratorConfig(BaseModel):
    strategy: str = Field(default="latest_file")
    target_app: str = Field(default="Antigravity")
    max_message_length: int = Field(default=4000, gt=0)
    housekeeping: bool = Field(default=True)


class ApiConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8090, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


# Parsed YAML for the load_settings() call in progress
_yaml_data: ContextVar[dict[str, Any]] = ContextVar("replywatch_yaml_data", default={})


class YamlDataSource(PydanticBaseSettingsSource):
    """Settings source serving the YAML file parsed by load_settings().

    Ranked below the environment and .env sources, so a ``REPLYWATCH_*``
    variable overrides the same key in the file.
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return _yaml_data.get().get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in _yaml_data.get().items()
            if name in self.settings_cls.model_fields
        }


class Settings(BaseSettings):
    """Root configuration for the replywatch system.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "REPLYWATCH_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openrouter_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    storage: StorageConfig = Field(default_factory=StorageConfig)
    file_watch: FileWatchConfig = Field(default_factory=FileWatchConfig)
    clipboard: ClipboardConfig = Field(default_factory=ClipboardConfig)
    screen: ScreenConfig = Field(default_factory=ScreenConfig)
    delay: DelayConfig = Field(default_factory=DelayConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    automation: AutomationConfig = Field(default_factory=AutomationConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlDataSource(settings_cls),
            file_secret_settings,
        )

    def vision_api_key(self) -> str:
        """API key for the vision engine, preferring OpenRouter when set."""
        return (
            self.openrouter_api_key.get_secret_value()
            or self.openai_api_key.get_secret_value()
        )


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults

    Raises:
        ConfigurationError: If the YAML is malformed or a value is invalid.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        try:
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {path}: {e}") from e
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    token = _yaml_data.set(yaml_data)
    try:
        return Settings()
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    finally:
        _yaml_data.reset(token)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply non-prefixed environment variables over the YAML values.

    ``REPLYWATCH_*`` variables still take precedence over these.
    """
    or_key = os.environ.get("OPENROUTER_API_KEY", "")
    or_base_url = os.environ.get("OPENROUTER_BASE_URL", "")
    vision_model = os.environ.get("VISION_MODEL", "")

    if or_key:
        yaml_data["openrouter_api_key"] = or_key

    if "extraction" not in yaml_data:
        yaml_data["extraction"] = {}

    if or_base_url:
        yaml_data["extraction"]["vision_base_url"] = or_base_url

    if vision_model:
        yaml_data["extraction"]["vision_model"] = vision_model
