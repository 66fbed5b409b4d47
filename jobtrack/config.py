"""
Runtime configuration.

Values come from environment variables, optionally seeded from a `.env`
file in the working directory.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_HOME = Path.home() / ".local" / "share" / "job_search"
DB_FILENAME = "job_search.db"


@dataclass
class AppConfig:
    home: Path = DEFAULT_HOME
    db_path: Path = DEFAULT_HOME / DB_FILENAME
    log_dir: Path = DEFAULT_HOME / "logs"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8080
    socket_timeout: float = 10.0


def load_env() -> None:
    """Load .env from the working directory if present."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _path_env(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if not raw:
        return default
    return Path(raw).expanduser()


def load_config(env_file: bool = True) -> AppConfig:
    """
    Build the configuration from the environment.

    Args:
        env_file: Load `.env` from the working directory first

    Returns:
        AppConfig instance
    """
    if env_file:
        load_env()

    home = _path_env("JOBTRACK_HOME", DEFAULT_HOME)
    return AppConfig(
        home=home,
        db_path=_path_env("JOBTRACK_DB_PATH", home / DB_FILENAME),
        log_dir=_path_env("JOBTRACK_LOG_DIR", home / "logs"),
        log_level=os.getenv("JOBTRACK_LOG_LEVEL", "INFO").upper(),
        host=os.getenv("JOBTRACK_HOST", "127.0.0.1"),
        port=_int_env("JOBTRACK_PORT", 8080),
        socket_timeout=_float_env("JOBTRACK_SOCKET_TIMEOUT", 10.0),
    )


def ensure_dirs(cfg: AppConfig) -> None:
    cfg.db_path.parent.mkdir(parents=True, exist_ok=True)
    cfg.log_dir.mkdir(parents=True, exist_ok=True)
