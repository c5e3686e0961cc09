"""Scanner configuration read from environment variables.

Entry scripts load ``.env`` (or ``env``) with python-dotenv before calling
``ScanSettings.from_env``.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class ConfigurationError(Exception):
    """Raised when required configuration is missing or malformed."""
    pass


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class ScanSettings:
    """Tunable scanner parameters. Scoring thresholds live in ScoringPolicy."""
    github_token: str = ""
    data_path: Path = Path("data/store.json")
    export_dir: Path = Path("public/data")

    batch_size: int = 15
    repos_per_user: int = 30
    rate_limit_buffer: int = 100
    reset_margin_seconds: float = 5.0
    max_users_per_hour: int = 100
    snapshot_every: int = 5
    cooldown_hours: float = 24.0

    user_delay_seconds: float = 2.0
    cycle_delay_seconds: float = 5.0
    error_cooldown_seconds: float = 30.0
    graphql_user_delay_seconds: float = 0.5
    graphql_users_per_topic: int = 20

    max_cycles: Optional[int] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, require_token: bool = True) -> "ScanSettings":
        """Build settings from the environment.

        Args:
            require_token: Fail when GITHUB_TOKEN is absent (export and stats don't need it)

        Raises:
            ConfigurationError: If GITHUB_TOKEN is missing or a number is malformed
        """
        token = os.getenv("GITHUB_TOKEN", "")
        if require_token and not token:
            raise ConfigurationError("GITHUB_TOKEN environment variable is required")

        max_cycles = _int_env("SCOUT_MAX_CYCLES", 0)
        return cls(
            github_token=token,
            data_path=Path(os.getenv("SCOUT_DATA_PATH", "data/store.json")),
            export_dir=Path(os.getenv("SCOUT_EXPORT_DIR", "public/data")),
            batch_size=_int_env("SCOUT_BATCH_SIZE", 15),
            rate_limit_buffer=_int_env("SCOUT_RATE_LIMIT_BUFFER", 100),
            max_users_per_hour=_int_env("SCOUT_MAX_USERS_PER_HOUR", 100),
            snapshot_every=max(1, _int_env("SCOUT_SNAPSHOT_EVERY", 5)),
            max_cycles=max_cycles or None,
            log_level=os.getenv("SCOUT_LOG_LEVEL", "INFO").upper(),
        )
