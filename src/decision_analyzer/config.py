"""Configuration management for the decision analyzer.

Configuration is an explicit value: it is loaded (from YAML, the environment,
or defaults) and handed to the orchestrator at construction time. Nothing in
the package reads provider settings implicitly at import time.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .app_logging import get_logger, sanitize_token
from .exceptions import ConfigurationError

logger = get_logger('config')


# Environment variables
CONFIG_PATH_ENV = "DECISION_ANALYZER_CONFIG"
PRIMARY_PROVIDER_ENV = "DECISION_ANALYZER_PRIMARY_PROVIDER"
MODEL_ENV = "DECISION_ANALYZER_MODEL"


class ProviderPreset(BaseModel):
    """Known OpenAI-compatible endpoint with its model tiers."""
    base_url: str
    api_key_env: str
    models: dict[str, str]


# Model tiers per hosted provider. The balanced tier is the default.
PROVIDER_PRESETS: dict[str, ProviderPreset] = {
    "groq": ProviderPreset(
        base_url="https://api.groq.com/openai/v1",
        api_key_env="GROQ_API_KEY",
        models={
            "fast": "gemma2-9b-it",
            "balanced": "llama-3.3-70b-versatile",
            "smart": "mixtral-8x7b-32768",
        },
    ),
    "openrouter": ProviderPreset(
        base_url="https://openrouter.ai/api/v1",
        api_key_env="OPENROUTER_API_KEY",
        models={
            "fast": "nousresearch/nous-capybara-7b:free",
            "balanced": "mistralai/mistral-7b-instruct:free",
            "smart": "gryphe/mythomist-7b:free",
        },
    ),
}

DEFAULT_PRIMARY = "groq"


class ProviderConfig(BaseModel):
    """Connection settings for one OpenAI-compatible model endpoint."""
    name: str = Field(..., description="Provider name used in logs and errors")
    model_name: str = Field(..., description="Model identifier sent to the endpoint")
    base_url: str = Field(..., description="OpenAI-compatible API base URL")
    api_key: Optional[str] = Field(
        None,
        description="API key; when empty, read from api_key_env at call time"
    )
    api_key_env: Optional[str] = Field(
        None,
        description="Environment variable holding the API key"
    )

    def resolve_api_key(self) -> Optional[str]:
        """Return the configured key, falling back to the environment."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env) or None
        return None

    def describe(self) -> str:
        """One-line description safe for logs."""
        return (
            f"{self.name} (model={self.model_name}, base_url={self.base_url}, "
            f"api_key={sanitize_token(self.resolve_api_key())})"
        )


class SamplingConfig(BaseModel):
    """Generation parameters shared by both provider tiers."""
    temperature: float = Field(0.3, ge=0.0, le=2.0, description="Sampling temperature")
    max_output_tokens: int = Field(2000, gt=0, description="Maximum tokens in the model response")
    timeout_seconds: float = Field(
        60.0,
        gt=0,
        description="Deadline for a single provider attempt, in seconds"
    )


class AnalyzerConfig(BaseModel):
    """Complete configuration for the decision analyzer."""
    primary: ProviderConfig
    fallback: ProviderConfig
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)


def preset_provider(name: str, model_name: Optional[str] = None, tier: str = "balanced") -> ProviderConfig:
    """Build a ProviderConfig from a named preset.

    Args:
        name: Preset name ('groq' or 'openrouter').
        model_name: Explicit model; defaults to the preset's tier model.
        tier: Preset tier used when model_name is not given.

    Raises:
        ConfigurationError: If the preset or tier is unknown.
    """
    preset = PROVIDER_PRESETS.get(name)
    if preset is None:
        raise ConfigurationError(
            f"Unknown provider '{name}'. Valid values: {', '.join(PROVIDER_PRESETS)}"
        )
    if model_name is None:
        if tier not in preset.models:
            raise ConfigurationError(
                f"Unknown tier '{tier}' for provider '{name}'. "
                f"Valid values: {', '.join(preset.models)}"
            )
        model_name = preset.models[tier]
    return ProviderConfig(
        name=name,
        model_name=model_name,
        base_url=preset.base_url,
        api_key_env=preset.api_key_env,
    )


def fallback_preset_name(primary: str) -> str:
    """The preset used as fallback for a given primary preset."""
    return "openrouter" if primary == "groq" else "groq"


def default_config(primary: str = DEFAULT_PRIMARY, model_name: Optional[str] = None) -> AnalyzerConfig:
    """Build the default configuration.

    The primary uses the given preset (with an optional model override); the
    fallback is the other preset at its balanced tier.
    """
    return AnalyzerConfig(
        primary=preset_provider(primary, model_name=model_name),
        fallback=preset_provider(fallback_preset_name(primary)),
    )


def config_from_environment() -> AnalyzerConfig:
    """Build configuration from environment variables.

    Reads:
    - DECISION_ANALYZER_PRIMARY_PROVIDER: 'groq' (default) or 'openrouter'
    - DECISION_ANALYZER_MODEL: model override for the primary provider
    """
    primary = os.environ.get(PRIMARY_PROVIDER_ENV, DEFAULT_PRIMARY).strip().lower()
    model_name = os.environ.get(MODEL_ENV) or None
    config = default_config(primary=primary, model_name=model_name)
    logger.debug(
        f"Config from environment: primary={config.primary.describe()}, "
        f"fallback={config.fallback.describe()}"
    )
    return config


def load_config(path: Path) -> AnalyzerConfig:
    """Load configuration from a YAML file.

    Missing sections fall back to the defaults of the selected primary preset.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The loaded AnalyzerConfig.

    Raises:
        ConfigurationError: If the file cannot be read or does not validate.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {path} must be a mapping")

    defaults = default_config().model_dump()
    merged = dict(defaults)
    for key, value in data.items():
        if key in ("primary", "fallback") and isinstance(value, dict):
            merged[key] = _merge_provider_section(value, defaults[key])
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value

    try:
        config = AnalyzerConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {path}: {e}") from e

    logger.info(
        f"Config loaded from {path}: primary={config.primary.name}, "
        f"fallback={config.fallback.name}"
    )
    return config


def _merge_provider_section(section: dict, default: dict) -> dict:
    """Fill a partial provider section from its named preset or the default."""
    name = section.get("name")
    if name and name != default.get("name") and name in PROVIDER_PRESETS:
        base = preset_provider(name).model_dump()
    else:
        base = dict(default)
    return {**base, **section}


def find_config_file() -> Optional[Path]:
    """Find an analyzer configuration file.

    Looks in (order of priority):
    1. DECISION_ANALYZER_CONFIG environment variable
    2. ./analyzer-config.yaml
    3. ./analyzer-config.yml
    4. ~/.config/decision-analyzer/config.yaml
    """
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path

    for name in ["analyzer-config.yaml", "analyzer-config.yml"]:
        path = Path(name)
        if path.exists():
            return path

    user_config = Path.home() / ".config" / "decision-analyzer" / "config.yaml"
    if user_config.exists():
        return user_config

    return None


def resolve_config(path: Optional[Path] = None) -> AnalyzerConfig:
    """Load config from an explicit path, a discovered file, or the environment."""
    if path is not None:
        return load_config(path)
    found = find_config_file()
    if found is not None:
        return load_config(found)
    return config_from_environment()


def save_default_config(path: Path) -> None:
    """Save the default configuration to a YAML file.

    Args:
        path: Path where to save the configuration.
    """
    data = default_config().model_dump()

    yaml_content = """# Decision Analyzer Configuration
# ===============================
#
# primary / fallback: OpenAI-compatible endpoints. The fallback is tried
# once when the primary call fails or returns unparseable output.
# API keys are read from api_key_env unless api_key is set here.
#
# Copy this file to one of these locations:
#   - ./analyzer-config.yaml (current directory)
#   - ~/.config/decision-analyzer/config.yaml (user config)
#
# Or set the DECISION_ANALYZER_CONFIG environment variable.

"""
    yaml_content += yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(yaml_content)
