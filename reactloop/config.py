"""Configuration management for reactloop."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Paths
DEFAULT_CONFIG_PATH = Path("~/.reactloop/config.yaml").expanduser()
LOCAL_CONFIG_FILENAME = "reactloop.yaml"


class ModelConfig(BaseModel):
    """Completion backend configuration."""

    provider: str = "groq"
    model: str = "meta-llama/llama-4-maverick-17b-128e-instruct"
    temperature: float = 0.2
    max_tokens: int = 6000
    api_key: str = ""
    base_url: str = ""
    timeout: float = 120.0


class AgentConfig(BaseModel):
    """ReAct loop configuration."""

    max_iterations: int = 25
    context_char_budget: int = 2000
    min_search_query_length: int = 15


class WebSearchToolConfig(BaseModel):
    """Web search tool configuration."""

    api_key: str = ""
    base_url: str = "https://api.search.brave.com/res/v1/web/search"
    max_results: int = 5
    timeout: int = 20


class WeatherToolConfig(BaseModel):
    """Weather tool configuration."""

    geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    timeout: int = 15


class ToolsConfig(BaseModel):
    """Tools configuration."""

    enabled: list[str] = [
        "get_weather_by_location",
        "web_search",
        "show_status",
        "analyze_page",
    ]
    default_timeout: float = 30.0
    web_search: WebSearchToolConfig = Field(default_factory=WebSearchToolConfig)
    weather: WeatherToolConfig = Field(default_factory=WeatherToolConfig)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for reactloop."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="REACTLOOP_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from YAML; env vars are applied by BaseSettings."""
        return cls.from_yaml()

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file."""
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
