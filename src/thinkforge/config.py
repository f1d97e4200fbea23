"""Configuration loading for ThinkForge.

Defaults live in ``_DEFAULTS``; a TOML file may override any known key and
unknown keys are rejected. The merged tree is validated into frozen
dataclasses so the rest of the application never touches raw mappings.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .core.config import (
    ConfigError,
    load_toml,
    merge_defaults,
    write_toml_template,
)
from .core import workspace as workspace_mod

CONFIG_PATH_ENV = "THINKFORGE_CONFIG"
CONFIG_FILENAME = "thinkforge.toml"
BACKEND_URL_ENV = "SUPABASE_URL"

DIFFICULTIES = ("easy", "medium", "hard")

__all__ = [
    "CONFIG_PATH_ENV",
    "CONFIG_FILENAME",
    "ConfigError",
    "InferenceConfig",
    "BackendConfig",
    "QuizConfig",
    "ChatConfig",
    "LoggingConfig",
    "ThinkForgeConfig",
    "resolve_config_path",
    "load_config",
    "default_config",
    "config_template",
    "write_template",
]


@dataclass(frozen=True)
class PathsConfig:
    data_home_override: Optional[Path]


@dataclass(frozen=True)
class InferenceConfig:
    provider: str
    model: str
    endpoint: str
    api_base: Optional[str]
    temperature: float
    max_output_tokens: int
    request_timeout_seconds: int


@dataclass(frozen=True)
class BackendConfig:
    url: Optional[str]
    anon_key_env: str
    request_timeout_seconds: int
    email_redirect_to: Optional[str]

    def resolved_url(self, env: Mapping[str, str] | None = None) -> str:
        """Return the backend URL, consulting ``SUPABASE_URL`` if unset."""

        env_map = os.environ if env is None else env
        url = self.url or (env_map.get(BACKEND_URL_ENV) or "").strip()
        if not url:
            raise ConfigError(
                f"backend.url is not set and {BACKEND_URL_ENV} is empty."
            )
        return url.rstrip("/")

    def resolved_key(self, env: Mapping[str, str] | None = None) -> str:
        env_map = os.environ if env is None else env
        key = (env_map.get(self.anon_key_env) or "").strip()
        if not key:
            raise ConfigError(
                f"{self.anon_key_env} not found in environment. Set it or "
                "add to .env"
            )
        return key


@dataclass(frozen=True)
class QuizConfig:
    subjects: tuple[str, ...]
    time_limits: Mapping[str, int]
    cache_max_entries: int
    cache_ttl_seconds: int


@dataclass(frozen=True)
class ChatConfig:
    max_message_length: int
    max_conversation_length: int
    default_subject: str


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class ThinkForgeConfig:
    paths: PathsConfig
    inference: InferenceConfig
    backend: BackendConfig
    quiz: QuizConfig
    chat: ChatConfig
    logging: LoggingConfig

    @property
    def data_home(self) -> Optional[Path]:
        return self.paths.data_home_override


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_non_negative_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"'{field}' must be a non-negative integer.")
    return value


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _coerce_optional_string(value: Any, *, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string when set.")
    return value.strip()


def _section(tree: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = tree.get(name, {})
    if not isinstance(section, Mapping):
        raise ConfigError(f"{name} table must be a mapping.")
    return section


def _build_paths(section: Mapping[str, Any]) -> PathsConfig:
    raw = _coerce_optional_string(
        section.get("data_home"), field="paths.data_home"
    )
    override = Path(raw).expanduser().resolve() if raw else None
    return PathsConfig(data_home_override=override)


def _build_inference(section: Mapping[str, Any]) -> InferenceConfig:
    provider = _require_string(
        section.get("provider"), field="inference.provider"
    ).lower()
    if provider not in {"ollama", "openai"}:
        raise ConfigError(
            "inference.provider must be one of 'ollama' or 'openai'."
        )
    return InferenceConfig(
        provider=provider,
        model=_require_string(section.get("model"), field="inference.model"),
        endpoint=_require_string(
            section.get("endpoint"), field="inference.endpoint"
        ),
        api_base=_coerce_optional_string(
            section.get("api_base"), field="inference.api_base"
        ),
        temperature=_require_float_range(
            section.get("temperature"),
            field="inference.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        max_output_tokens=_require_positive_int(
            section.get("max_output_tokens"),
            field="inference.max_output_tokens",
        ),
        request_timeout_seconds=_require_positive_int(
            section.get("request_timeout_seconds"),
            field="inference.request_timeout_seconds",
        ),
    )


def _build_backend(section: Mapping[str, Any]) -> BackendConfig:
    url = _coerce_optional_string(section.get("url"), field="backend.url")
    return BackendConfig(
        url=url.rstrip("/") if url else None,
        anon_key_env=_require_string(
            section.get("anon_key_env"), field="backend.anon_key_env"
        ),
        request_timeout_seconds=_require_positive_int(
            section.get("request_timeout_seconds"),
            field="backend.request_timeout_seconds",
        ),
        email_redirect_to=_coerce_optional_string(
            section.get("email_redirect_to"),
            field="backend.email_redirect_to",
        ),
    )


def _build_quiz(section: Mapping[str, Any]) -> QuizConfig:
    raw_subjects = section.get("subjects")
    if not isinstance(raw_subjects, list) or not raw_subjects:
        raise ConfigError("'quiz.subjects' must be a non-empty list.")
    subjects = tuple(
        _require_string(item, field="quiz.subjects[]") for item in raw_subjects
    )
    limits_section = section.get("time_limits")
    if not isinstance(limits_section, Mapping):
        raise ConfigError("quiz.time_limits table is required.")
    time_limits = {
        level: _require_positive_int(
            limits_section.get(level), field=f"quiz.time_limits.{level}"
        )
        for level in DIFFICULTIES
    }
    return QuizConfig(
        subjects=subjects,
        time_limits=time_limits,
        cache_max_entries=_require_non_negative_int(
            section.get("cache_max_entries"),
            field="quiz.cache_max_entries",
        ),
        cache_ttl_seconds=_require_non_negative_int(
            section.get("cache_ttl_seconds"),
            field="quiz.cache_ttl_seconds",
        ),
    )


def _build_chat(section: Mapping[str, Any]) -> ChatConfig:
    return ChatConfig(
        max_message_length=_require_positive_int(
            section.get("max_message_length"),
            field="chat.max_message_length",
        ),
        max_conversation_length=_require_positive_int(
            section.get("max_conversation_length"),
            field="chat.max_conversation_length",
        ),
        default_subject=_require_string(
            section.get("default_subject"), field="chat.default_subject"
        ),
    )


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(section.get("level"), field="logging.level").upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigError(
            "logging.level must be one of "
            "DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(tree: Mapping[str, Any]) -> ThinkForgeConfig:
    return ThinkForgeConfig(
        paths=_build_paths(_section(tree, "paths")),
        inference=_build_inference(_section(tree, "inference")),
        backend=_build_backend(_section(tree, "backend")),
        quiz=_build_quiz(_section(tree, "quiz")),
        chat=_build_chat(_section(tree, "chat")),
        logging=_build_logging(_section(tree, "logging")),
    )


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> Path:
    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().resolve()
    env_override = (env_map.get(CONFIG_PATH_ENV) or "").strip()
    if env_override:
        return Path(env_override).expanduser().resolve()
    layout = workspace_mod.ensure_workspace(env=env_map, create=False)
    return layout.path_for("config") / CONFIG_FILENAME


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> ThinkForgeConfig:
    """Load the TOML config, applying defaults and validation.

    An explicitly requested file must exist; the default location is
    optional and falls back to the built-in defaults.
    """

    env_map = os.environ if env is None else env
    path = resolve_config_path(explicit_path=explicit_path, env=env_map)
    is_explicit = explicit_path is not None or bool(
        (env_map.get(CONFIG_PATH_ENV) or "").strip()
    )
    overrides = load_toml(path, missing_ok=not is_explicit)
    return _build_config(merge_defaults(_DEFAULTS, overrides))


def default_config() -> ThinkForgeConfig:
    """Return the configuration built from defaults only."""

    return _build_config(copy.deepcopy(_DEFAULTS))


def config_template() -> str:
    """Return the TOML template recommended for new installs."""

    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    return write_toml_template(
        path, template=config_template(), overwrite=overwrite, mode=mode
    )


_DEFAULTS: Dict[str, Any] = {
    "paths": {
        "data_home": None,
    },
    "inference": {
        "provider": "ollama",
        "model": "mistral",
        "endpoint": "http://localhost:11434/api/generate",
        "api_base": None,
        "temperature": 0.7,
        "max_output_tokens": 1500,
        "request_timeout_seconds": 120,
    },
    "backend": {
        "url": None,
        "anon_key_env": "SUPABASE_ANON_KEY",
        "request_timeout_seconds": 30,
        "email_redirect_to": None,
    },
    "quiz": {
        "subjects": [
            "Mathematics",
            "Physics",
            "Chemistry",
            "Biology",
            "Computer Science",
            "History",
            "Geography",
            "English Literature",
            "Economics",
            "Psychology",
        ],
        "time_limits": {
            "easy": 20,
            "medium": 60,
            "hard": 120,
        },
        "cache_max_entries": 16,
        "cache_ttl_seconds": 300,
    },
    "chat": {
        "max_message_length": 1000,
        "max_conversation_length": 50,
        "default_subject": "General",
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# ThinkForge configuration

[paths]
# Override the workspace directory (~/.thinkforge)
# data_home = "~/thinkforge-data"

[inference]
# "ollama" posts prompts to a local /api/generate endpoint,
# "openai" uses chat completions with OPENAI_API_KEY.
provider = "ollama"
model = "mistral"
endpoint = "http://localhost:11434/api/generate"
# api_base = "https://api.openai.com/v1"
temperature = 0.7
max_output_tokens = 1500
request_timeout_seconds = 120

[backend]
# Supabase project URL (falls back to SUPABASE_URL)
# url = "https://your-project.supabase.co"
# Environment variable holding the anon API key
anon_key_env = "SUPABASE_ANON_KEY"
request_timeout_seconds = 30
# Where confirmation emails should send the user back to
# email_redirect_to = "https://example.com/auth/confirm"

[quiz]
subjects = [
  "Mathematics", "Physics", "Chemistry", "Biology", "Computer Science",
  "History", "Geography", "English Literature", "Economics", "Psychology",
]
# Reuse a generated batch for the same subject within this window (0 = off)
cache_max_entries = 16
cache_ttl_seconds = 300

[quiz.time_limits]
# Seconds allowed per question, by difficulty
easy = 20
medium = 60
hard = 120

[chat]
max_message_length = 1000
# Most recent messages sent to the tutor as context
max_conversation_length = 50
default_subject = "General"

[logging]
level = "INFO"
verbose = false
"""
