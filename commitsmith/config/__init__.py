"""Configuration Management Package"""

import json
import os
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Optional

import structlog

log = structlog.get_logger(__name__)

# Valid configuration values
VALID_PROVIDERS = {"auto", "claude", "ollama"}

ENV_PREFIX = "COMMITSMITH_"
TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class PipelineConfig:
    """Knobs of the generate / reflect / verify / refine loop."""
    debug: bool = False
    max_iterations: int = 2
    # Base acceptance threshold per diff complexity
    thresholds: dict[str, int] = field(default_factory=lambda: {
        "simple": 75,
        "moderate": 80,
        "medium": 80,
        "complex": 85,
    })
    default_threshold: int = 80
    threshold_floor: int = 70
    late_iteration_discount: int = 10
    min_criterion_score: int = 60
    min_factual_accuracy: int = 60
    strong_factual_accuracy: int = 80
    generation_temperature: float = 0.4
    generation_max_tokens: int = 1000
    reflection_temperature: float = 0.3
    reflection_max_tokens: int = 2000
    verification_temperature: float = 0.1
    verification_max_tokens: int = 1500
    verification_diff_limit: int = 8000
    call_timeout: float = 120.0
    num_examples: int = 2

    def __post_init__(self):
        if self.max_iterations < 1:
            object.__setattr__(self, "max_iterations", 1)


@dataclass
class Config:
    """User configuration with sensible defaults."""
    provider: str = "auto"
    model: Optional[str] = None
    include_body: bool = True
    max_subject_length: int = 72
    ticket_prefix: str = "Refs"
    max_file_display: int = 8  # Max files shown before collapsing list
    max_iterations: int = 2
    ast_analysis: bool = True
    call_timeout: int = 120
    debug: bool = False

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def validate(self) -> list[str]:
        """Validate config values and return list of warnings.

        Invalid values are replaced with defaults after warning.
        """
        warnings = []
        defaults = Config()

        if self.provider not in VALID_PROVIDERS:
            warnings.append(f"Invalid provider '{self.provider}', using '{defaults.provider}'")
            self.provider = defaults.provider

        for name in ("max_subject_length", "max_file_display", "max_iterations", "call_timeout"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                default = getattr(defaults, name)
                warnings.append(f"Invalid {name} '{value}', using {default}")
                setattr(self, name, default)

        for name in ("include_body", "ast_analysis", "debug"):
            if not isinstance(getattr(self, name), bool):
                default = getattr(defaults, name)
                warnings.append(f"Invalid {name} '{getattr(self, name)}', using {str(default).lower()}")
                setattr(self, name, default)

        return warnings

    def apply_env(self, environ=None) -> 'Config':
        """Apply COMMITSMITH_* environment overrides in place."""
        environ = os.environ if environ is None else environ
        if environ.get(f"{ENV_PREFIX}PROVIDER"):
            self.provider = environ[f"{ENV_PREFIX}PROVIDER"]
        if environ.get(f"{ENV_PREFIX}MODEL"):
            self.model = environ[f"{ENV_PREFIX}MODEL"]
        if environ.get(f"{ENV_PREFIX}DEBUG"):
            self.debug = environ[f"{ENV_PREFIX}DEBUG"].strip().lower() in TRUTHY
        for warning in self.validate():
            log.warning("config_invalid_value", detail=warning, source="environment")
        return self

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            debug=self.debug,
            max_iterations=self.max_iterations,
            call_timeout=float(self.call_timeout),
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        config = cls(**filtered)
        for warning in config.validate():
            log.warning("config_invalid_value", detail=warning)
        return config


class ConfigManager:
    """Manages loading and saving configuration."""

    CONFIG_FILENAME = ".commitsmithrc"

    def __init__(self):
        self._config: Optional[Config] = None
        self._config_path: Optional[Path] = None

    def load(self) -> Config:
        if self._config is not None:
            return self._config

        for path in (Path.cwd() / self.CONFIG_FILENAME, Path.home() / self.CONFIG_FILENAME):
            if path.exists():
                self._config = self._load_from_file(path)
                self._config_path = path
                return self._config

        self._config = Config()
        return self._config

    def _load_from_file(self, path: Path) -> Config:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top-level value must be an object")
            return Config.from_dict(data)
        except (json.JSONDecodeError, ValueError, OSError) as e:
            log.warning("config_unreadable", path=str(path), error=str(e))
            return Config()

    def save(self, config: Config, global_config: bool = True) -> Path:
        path = Path.home() / self.CONFIG_FILENAME if global_config else Path.cwd() / self.CONFIG_FILENAME
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(config.to_dict(), f, indent=2)
        return path

    def get_config_path(self) -> Optional[Path]:
        return self._config_path


_manager = ConfigManager()


def load_config() -> Config:
    return _manager.load()


def save_config(config: Config, global_config: bool = True) -> Path:
    return _manager.save(config, global_config)


def get_config_path() -> Optional[Path]:
    return _manager.get_config_path()


__all__ = [
    "Config",
    "ConfigManager",
    "PipelineConfig",
    "load_config",
    "save_config",
    "get_config_path",
    "VALID_PROVIDERS",
    "ENV_PREFIX",
]
