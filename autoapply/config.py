"""YAML config loading and validation."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from autoapply.profile.models import CandidateProfile, ProviderName
from autoapply.utils.currency import currency_codes, is_known_currency

DEFAULT_BOARD_URL = "https://www.arbeitnow.com/api/job-board-api"


@dataclass
class SchedulerConfig:
    enabled: bool = True
    poll_interval_seconds: int = 300
    cycle_hours: float = 24.0
    digest_size: int = 5
    # Without a stored checkpoint, pretend the last cycle ran this long ago
    initial_lag_hours: float = 23.0


@dataclass
class ProviderConfig:
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    openrouter_api_key: str = ""  # used when the profile carries no token
    openrouter_model: str = "meta-llama/llama-3-8b-instruct:free"
    huggingface_token: str = ""  # used when the profile carries no token
    huggingface_model: str = "mistralai/Mistral-7B-Instruct-v0.3"
    request_timeout: float = 60.0
    fallback_to_alternates: bool = True
    board_url: str = DEFAULT_BOARD_URL
    board_max_results: int = 8


@dataclass
class DispatchConfig:
    relay_timeout: float = 15.0


@dataclass
class AppConfig:
    profile: CandidateProfile = field(default_factory=CandidateProfile)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    seed_jobs: list[dict] = field(default_factory=list)
    database_url: str = "sqlite:///data/autoapply.db"
    data_dir: str = "data"
    log_dir: str = "logs"


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load configuration from a YAML file; env vars override secrets."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Copy config.example.yaml to config.yaml and fill in your settings."
        )

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return config_from_dict(raw)


def config_from_dict(raw: dict) -> AppConfig:
    config = AppConfig()

    # Profile
    config.profile = CandidateProfile.from_dict(raw.get("profile", {}))
    relay_url = os.environ.get("AUTOAPPLY_RELAY_URL")
    if relay_url:
        config.profile.preferences.relay_url = relay_url

    # Scheduler
    sched_raw = raw.get("scheduler", {}) or {}
    config.scheduler = SchedulerConfig(
        enabled=sched_raw.get("enabled", True),
        poll_interval_seconds=int(sched_raw.get("poll_interval_seconds", 300)),
        cycle_hours=float(sched_raw.get("cycle_hours", 24.0)),
        digest_size=int(sched_raw.get("digest_size", 5)),
        initial_lag_hours=float(sched_raw.get("initial_lag_hours", 23.0)),
    )

    # Providers (env vars take precedence)
    prov_raw = raw.get("providers", {}) or {}
    defaults = ProviderConfig()
    config.providers = ProviderConfig(
        gemini_api_key=(
            os.environ.get("GEMINI_API_KEY")
            or os.environ.get("API_KEY")
            or prov_raw.get("gemini_api_key", "")
        ),
        gemini_model=prov_raw.get("gemini_model", defaults.gemini_model),
        openrouter_api_key=os.environ.get("OPENROUTER_API_KEY", prov_raw.get("openrouter_api_key", "")),
        openrouter_model=prov_raw.get("openrouter_model", defaults.openrouter_model),
        huggingface_token=os.environ.get("HF_TOKEN", prov_raw.get("huggingface_token", "")),
        huggingface_model=prov_raw.get("huggingface_model", defaults.huggingface_model),
        request_timeout=float(prov_raw.get("request_timeout", defaults.request_timeout)),
        fallback_to_alternates=prov_raw.get("fallback_to_alternates", True),
        board_url=prov_raw.get("board_url", DEFAULT_BOARD_URL),
        board_max_results=int(prov_raw.get("board_max_results", defaults.board_max_results)),
    )

    # Dispatch
    dispatch_raw = raw.get("dispatch", {}) or {}
    config.dispatch = DispatchConfig(
        relay_timeout=float(dispatch_raw.get("relay_timeout", 15.0)),
    )

    config.seed_jobs = list(raw.get("seed_jobs", []) or [])
    config.data_dir = raw.get("data_dir", "data")
    config.log_dir = raw.get("log_dir", "logs")
    config.database_url = os.environ.get(
        "DATABASE_URL",
        raw.get("database_url", f"sqlite:///{Path(config.data_dir) / 'autoapply.db'}"),
    )

    return config


def provider_credential(providers: ProviderConfig, provider: ProviderName, profile: CandidateProfile) -> str:
    """Credential for a provider: profile tokens first, then config/env."""
    tokens = profile.preferences.api_tokens
    if provider == ProviderName.GEMINI:
        return providers.gemini_api_key
    if provider == ProviderName.OPENROUTER:
        return tokens.openrouter_token or providers.openrouter_api_key
    return tokens.hf_token or providers.huggingface_token


def validate_config(config: AppConfig) -> list[str]:
    """Return list of validation warnings (empty = OK)."""
    warnings = []
    profile = config.profile

    if not profile.desired_roles:
        warnings.append("No desired roles configured - the public board fallback will find nothing")

    if not profile.personal_info.email:
        warnings.append("No profile email configured - daily digests cannot be delivered")

    selected = profile.preferences.ai_provider
    if not provider_credential(config.providers, selected, profile):
        warnings.append(
            f"No credential for selected provider '{selected.value}' - "
            "alternates, the public board and heuristic defaults will be used"
        )

    if not profile.preferences.relay_url:
        warnings.append("No relay endpoint configured - dispatch will use local handoff only")

    if not is_known_currency(profile.preferences.currency):
        warnings.append(
            f"Unknown currency '{profile.preferences.currency}' - supported: {', '.join(currency_codes())}"
        )

    if config.scheduler.poll_interval_seconds <= 0:
        warnings.append("scheduler.poll_interval_seconds must be positive")

    if config.scheduler.cycle_hours <= 0:
        warnings.append("scheduler.cycle_hours must be positive")

    return warnings
