"""
Configuration management for the quote bot.

Settings are read from environment variables (a .env file is loaded by the
entry point) and validated into immutable pydantic models. Validation is
exhaustive: every missing or invalid setting is collected and reported in a
single ConfigurationError rather than failing on the first problem.

Environment Variables:
    General:
        APP_ENV: development, production or test
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL
        LOG_DIR: Directory for JSON log files

    AI provider:
        AI_PROVIDER: openai, anthropic, gemini, ollama or transformers
        AI_PROVIDER_MACOS / AI_PROVIDER_LINUX / AI_PROVIDER_WINDOWS:
            Per-platform override of AI_PROVIDER
        OPENAI_API_KEY, OPENAI_MODEL
        ANTHROPIC_API_KEY, ANTHROPIC_MODEL
        GEMINI_API_KEY, GEMINI_MODEL
        OLLAMA_BASE_URL, OLLAMA_MODEL, OLLAMA_API_KEY
        TRANSFORMERS_MODEL
        AI_MAX_TOKENS: 100-2000 (default 500)
        AI_TEMPERATURE: 0-2 (default 0.7)
        INTERVIEWEE_NAME: Person quoted, used in the prompt and the email

    Email:
        EMAIL_HOST, EMAIL_PORT, EMAIL_SECURE, EMAIL_USER, EMAIL_PASSWORD,
        EMAIL_FROM, EMAIL_RECIPIENTS (comma-separated)

    Data:
        INTERVIEWS_FILE_PATH: JSON array of {"url", "text"} objects

    Scheduling:
        CRON_SCHEDULE: Five-field cron expression (default "0 9 * * *")
        SCHEDULE_TIMEZONE: Timezone the cron expression is evaluated in
        RUN_ONCE: Run a single quote and exit
"""

import os
import platform
import re
from pathlib import Path
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Mapping, Optional, Union

import pytz
from apscheduler.triggers.cron import CronTrigger
from croniter import croniter
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from logger import get_logger


logger = get_logger()

PROVIDER_KINDS = ("openai", "anthropic", "gemini", "ollama", "transformers")
HOSTED_PROVIDERS = frozenset({"openai", "anthropic", "gemini"})

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
APP_ENVS = ("development", "production", "test")

# platform.system() -> suffix of the per-platform provider override key
PLATFORM_FAMILIES = {
    "Darwin": "MACOS",
    "Linux": "LINUX",
    "Windows": "WINDOWS",
}

MASK = "*" * 8


class ConfigurationError(Exception):
    """Raised when settings are missing or invalid.

    Attributes:
        issues: Every violation found, in the order checked
    """

    def __init__(self, issues: Union[str, List[str]]):
        if isinstance(issues, str):
            issues = [issues]
        self.issues = list(issues)
        super().__init__(f"Configuration validation failed: {'; '.join(self.issues)}")


# ============================================================================
# Provider configuration (discriminated on `kind`)
# ============================================================================

class _GenerationSettings(BaseModel):
    """Generation limits shared by every provider variant."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    max_tokens: int = Field(default=500, ge=100, le=2000)
    temperature: float = Field(default=0.7, ge=0, le=2)


class OpenAIConfig(_GenerationSettings):
    requires_api_key: ClassVar[bool] = True

    kind: Literal["openai"] = "openai"
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"


class AnthropicConfig(_GenerationSettings):
    requires_api_key: ClassVar[bool] = True

    kind: Literal["anthropic"] = "anthropic"
    api_key: Optional[str] = None
    model: str = "claude-3-5-haiku-20241022"


class GeminiConfig(_GenerationSettings):
    requires_api_key: ClassVar[bool] = True

    kind: Literal["gemini"] = "gemini"
    api_key: Optional[str] = None
    model: str = "gemini-1.5-flash"


class OllamaConfig(_GenerationSettings):
    requires_api_key: ClassVar[bool] = False

    kind: Literal["ollama"] = "ollama"
    api_key: Optional[str] = None
    model: str = "llama3.2"
    base_url: str = "http://localhost:11434"


class TransformersConfig(_GenerationSettings):
    requires_api_key: ClassVar[bool] = False

    kind: Literal["transformers"] = "transformers"
    api_key: Optional[str] = None
    model: str = "Qwen/Qwen2.5-0.5B-Instruct"


ProviderConfig = Annotated[
    Union[OpenAIConfig, AnthropicConfig, GeminiConfig, OllamaConfig, TransformersConfig],
    Field(discriminator="kind"),
]

provider_config_adapter = TypeAdapter(ProviderConfig)


# ============================================================================
# Other setting groups
# ============================================================================

class EmailConfig(BaseModel):
    """SMTP connection settings and the recipient list."""

    model_config = ConfigDict(frozen=True)

    host: str = ""
    port: int = Field(default=587, ge=1, le=65535)
    secure: bool = False
    user: str = ""
    password: str = ""
    sender: Optional[str] = None
    recipients: List[str] = Field(default_factory=list)

    @property
    def from_address(self) -> str:
        return self.sender or self.user


class DataConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    interviews_file_path: Path = Path("./data/interviews.json")


class ScheduleConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    cron_schedule: str = "0 9 * * *"
    timezone: str = "America/New_York"
    run_once: bool = False


class AppConfig(BaseModel):
    """Fully validated application configuration.

    Built once by load_config() and handed to each component's constructor.
    """

    model_config = ConfigDict(frozen=True)

    app_env: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    interviewee_name: str = "the interviewee"
    ai: ProviderConfig
    email: EmailConfig
    data: DataConfig = Field(default_factory=DataConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    def debug_info(self) -> Dict[str, Any]:
        """Return all settings as a dict with credentials masked."""
        info = self.model_dump(mode="json")
        if info["ai"].get("api_key"):
            info["ai"]["api_key"] = MASK
        for key in ("user", "password"):
            if info["email"].get(key):
                info["email"][key] = MASK
        return info


# ============================================================================
# Loading
# ============================================================================

_ENV_NAMES = {
    "max_tokens": "AI_MAX_TOKENS",
    "temperature": "AI_TEMPERATURE",
    "port": "EMAIL_PORT",
}


def _get(env: Mapping[str, str], key: str, default: Optional[str] = None) -> Optional[str]:
    """Read a setting, treating blank values as unset."""
    value = env.get(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def _parse_int(env: Mapping[str, str], key: str, default: int, issues: List[str]) -> int:
    raw = _get(env, key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        issues.append(f"{key} must be an integer (got '{raw}')")
        return default


def _parse_float(env: Mapping[str, str], key: str, default: float, issues: List[str]) -> float:
    raw = _get(env, key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        issues.append(f"{key} must be a number (got '{raw}')")
        return default


def _parse_bool(env: Mapping[str, str], key: str, default: bool, issues: List[str]) -> bool:
    raw = _get(env, key)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    issues.append(f"{key} must be a boolean (got '{raw}')")
    return default


def _validation_issues(error: ValidationError) -> List[str]:
    issues = []
    for err in error.errors():
        field = str(err["loc"][-1]) if err["loc"] else "value"
        issues.append(f"{_ENV_NAMES.get(field, field)}: {err['msg']}")
    return issues


def parse_recipients(raw: Optional[str]) -> List[str]:
    """Split a comma-separated recipient list, dropping blank entries."""
    if not raw:
        return []
    return [email.strip() for email in raw.split(",") if email.strip()]


def resolve_provider(env: Mapping[str, str], system: Optional[str] = None) -> str:
    """
    Resolve the effective AI provider.

    A per-platform key (e.g. AI_PROVIDER_MACOS) wins over AI_PROVIDER so the
    same .env can run a local model on a laptop and a hosted API on a server.

    Args:
        env: Environment mapping
        system: Result of platform.system(); detected when omitted

    Returns:
        Lower-cased provider name (not yet validated)
    """
    family = PLATFORM_FAMILIES.get(system or platform.system())
    override = _get(env, f"AI_PROVIDER_{family}") if family else None
    return (override or _get(env, "AI_PROVIDER", "openai")).lower()


def _provider_settings(provider: str, env: Mapping[str, str], issues: List[str]) -> Dict[str, Any]:
    settings: Dict[str, Any] = {
        "kind": provider,
        "max_tokens": _parse_int(env, "AI_MAX_TOKENS", 500, issues),
        "temperature": _parse_float(env, "AI_TEMPERATURE", 0.7, issues),
    }

    if provider == "transformers":
        model = _get(env, "TRANSFORMERS_MODEL")
    else:
        prefix = provider.upper()
        model = _get(env, f"{prefix}_MODEL")
        settings["api_key"] = _get(env, f"{prefix}_API_KEY")
        if provider in HOSTED_PROVIDERS and not settings["api_key"]:
            issues.append(f"{prefix}_API_KEY is required when AI_PROVIDER={provider}")

    if provider == "ollama":
        base_url = _get(env, "OLLAMA_BASE_URL")
        if base_url:
            settings["base_url"] = base_url.rstrip("/")

    if model:
        settings["model"] = model
    return settings


def check_api_key_format(ai: Any) -> List[str]:
    """Return soft warnings for credentials that look malformed."""
    warnings = []
    key = getattr(ai, "api_key", None)
    if not key:
        return warnings
    if ai.kind == "openai" and not key.startswith("sk-"):
        warnings.append('OpenAI API key should start with "sk-"')
    elif ai.kind == "anthropic" and not key.startswith("sk-ant-"):
        warnings.append('Anthropic API key should start with "sk-ant-"')
    elif ai.kind == "gemini" and len(key) < 20:
        warnings.append("Gemini API key appears to be invalid")
    return warnings


def load_config(environ: Optional[Mapping[str, str]] = None, system: Optional[str] = None) -> AppConfig:
    """
    Build and validate the application configuration.

    Args:
        environ: Mapping to read settings from (defaults to os.environ)
        system: Platform name override, for the per-platform provider key

    Returns:
        Validated AppConfig

    Raises:
        ConfigurationError: With the complete list of violations
    """
    env = dict(os.environ if environ is None else environ)
    issues: List[str] = []

    app_env = _get(env, "APP_ENV", "development").lower()
    if app_env not in APP_ENVS:
        issues.append(f"APP_ENV must be one of {', '.join(APP_ENVS)} (got '{app_env}')")

    log_level = _get(env, "LOG_LEVEL", "INFO").upper()
    if log_level not in LOG_LEVELS:
        issues.append(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)} (got '{log_level}')")

    # AI provider
    provider = resolve_provider(env, system)
    ai = None
    if provider not in PROVIDER_KINDS:
        issues.append(f"AI_PROVIDER must be one of {', '.join(PROVIDER_KINDS)} (got '{provider}')")
    else:
        settings = _provider_settings(provider, env, issues)
        try:
            ai = provider_config_adapter.validate_python(settings)
        except ValidationError as e:
            issues.extend(_validation_issues(e))

    # Email
    for key in ("EMAIL_HOST", "EMAIL_USER", "EMAIL_PASSWORD"):
        if not _get(env, key):
            issues.append(f"{key} is required")

    sender = _get(env, "EMAIL_FROM")
    if sender and not EMAIL_PATTERN.match(sender):
        issues.append(f"EMAIL_FROM is not a valid email address: {sender}")

    recipients = parse_recipients(_get(env, "EMAIL_RECIPIENTS"))
    if not recipients:
        issues.append("EMAIL_RECIPIENTS must list at least one email recipient")
    for email in recipients:
        if not EMAIL_PATTERN.match(email):
            issues.append(f"Invalid email format: {email}")

    email = None
    try:
        email = EmailConfig(
            host=_get(env, "EMAIL_HOST", ""),
            port=_parse_int(env, "EMAIL_PORT", 587, issues),
            secure=_parse_bool(env, "EMAIL_SECURE", False, issues),
            user=_get(env, "EMAIL_USER", ""),
            password=_get(env, "EMAIL_PASSWORD", ""),
            sender=sender,
            recipients=recipients,
        )
    except ValidationError as e:
        issues.extend(_validation_issues(e))

    # Schedule
    cron_schedule = _get(env, "CRON_SCHEDULE", "0 9 * * *")
    if not croniter.is_valid(cron_schedule):
        issues.append(f"CRON_SCHEDULE is not a valid cron expression: '{cron_schedule}'")
    else:
        # croniter also takes 6-field and @-alias forms that the scheduler rejects
        try:
            CronTrigger.from_crontab(cron_schedule, timezone=pytz.utc)
        except ValueError as e:
            issues.append(f"CRON_SCHEDULE must be a five-field cron expression: '{cron_schedule}' ({e})")

    timezone_name = _get(env, "SCHEDULE_TIMEZONE", "America/New_York")
    try:
        pytz.timezone(timezone_name)
    except pytz.exceptions.UnknownTimeZoneError:
        issues.append(f"SCHEDULE_TIMEZONE is not a known timezone: '{timezone_name}'")

    run_once = _parse_bool(env, "RUN_ONCE", False, issues)

    if issues:
        logger.error(
            "Configuration validation failed",
            extra={"metadata": {"issues": issues}}
        )
        raise ConfigurationError(issues)

    config = AppConfig(
        app_env=app_env,
        log_level=log_level,
        log_dir=Path(_get(env, "LOG_DIR", "logs")),
        interviewee_name=_get(env, "INTERVIEWEE_NAME", "the interviewee"),
        ai=ai,
        email=email,
        data=DataConfig(
            interviews_file_path=Path(_get(env, "INTERVIEWS_FILE_PATH", "./data/interviews.json"))
        ),
        schedule=ScheduleConfig(
            cron_schedule=cron_schedule,
            timezone=timezone_name,
            run_once=run_once,
        ),
    )

    for warning in check_api_key_format(config.ai):
        logger.warning(warning)

    logger.info(
        "Configuration validated successfully",
        extra={"metadata": {"provider": config.ai.kind, "recipients": len(recipients)}}
    )
    return config
