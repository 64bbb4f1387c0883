"""Configuration management for jira-tui."""

import tomllib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import tomli_w

from jira_tui.exceptions import ConfigNotFoundError, InvalidConfigError

PLACEHOLDER_URL = "https://your-domain.atlassian.net"


@dataclass
class Config:
    """Configuration for the JIRA connection and the terminal UI."""

    jira_url: str
    jira_email: str
    jira_api_token: str
    default_board_id: int | None = None
    theme: str = "default"
    refresh_interval: int = 30
    timeout: float = 30.0

    def validate(self) -> list[str]:
        """Validate configuration values. Returns list of error messages."""
        errors: list[str] = []

        if not self.jira_url:
            errors.append("JIRA URL is required")
        else:
            parsed = urlparse(self.jira_url)
            if parsed.scheme not in ("http", "https"):
                errors.append("JIRA URL must start with http:// or https://")
            if not parsed.netloc:
                errors.append("JIRA URL must include a domain")

        if not self.jira_email:
            errors.append("JIRA email is required")
        elif "@" not in self.jira_email:
            errors.append("JIRA email must be a valid email address")

        if not self.jira_api_token:
            errors.append("JIRA API token is required")

        if self.default_board_id is not None and self.default_board_id <= 0:
            errors.append("Default board id must be a positive integer")

        if self.refresh_interval < 0:
            errors.append("Refresh interval cannot be negative")

        if self.timeout <= 0:
            errors.append("Request timeout must be positive")

        return errors


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".config" / "jira-tui"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def config_exists(path: Path | None = None) -> bool:
    """Check if configuration file exists."""
    return (path or get_config_path()).exists()


def default_config() -> Config:
    """Placeholder configuration written on first start."""
    return Config(jira_url=PLACEHOLDER_URL, jira_email="", jira_api_token="")


def load_config(path: Path | None = None) -> Config:
    """Load configuration from TOML file.

    Raises:
        ConfigNotFoundError: If config file doesn't exist
        InvalidConfigError: If the file cannot be parsed or values are invalid
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise ConfigNotFoundError(
            f"Configuration not found at {config_path}. "
            "Create it with a [jira] section containing url, email and api_token."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise InvalidConfigError(f"Cannot parse {config_path}: {e}") from e

    jira_section = data.get("jira", {})
    ui_section = data.get("ui", {})

    try:
        config = Config(
            jira_url=jira_section.get("url", ""),
            jira_email=jira_section.get("email", ""),
            jira_api_token=jira_section.get("api_token", ""),
            default_board_id=_optional_int(jira_section.get("default_board_id")),
            theme=str(ui_section.get("theme", "default")),
            refresh_interval=int(ui_section.get("refresh_interval", 30)),
            timeout=float(jira_section.get("timeout", 30.0)),
        )
    except (TypeError, ValueError) as e:
        raise InvalidConfigError(f"Invalid configuration in {config_path}: {e}") from e

    errors = config.validate()
    if errors:
        raise InvalidConfigError(
            f"Invalid configuration in {config_path}: {'; '.join(errors)}"
        )

    return config


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to TOML file."""
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    jira_data: dict = {
        "url": config.jira_url,
        "email": config.jira_email,
        "api_token": config.jira_api_token,
        "timeout": config.timeout,
    }
    if config.default_board_id is not None:
        jira_data["default_board_id"] = config.default_board_id

    data: dict = {
        "jira": jira_data,
        "ui": {
            "theme": config.theme,
            "refresh_interval": config.refresh_interval,
        },
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)


def _optional_int(value) -> int | None:
    if value is None or value == "":
        return None
    return int(value)
