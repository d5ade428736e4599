import logging
import re
from pathlib import Path

from pydantic_settings import BaseSettings


SQLITE_DRIVER = "sqlite"
MYSQL_DRIVER = "mysql"

PSYCHONAUTWIKI_ADDRESS = "api.psychonautwiki.org"

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(raw: str | None) -> float | None:
    """Parse durations like ``5s``, ``1m30s`` or ``250ms`` into seconds.

    Empty values and ``none`` disable the timeout and return ``None``.
    """
    value = (raw or "").strip().lower()
    if not value or value == "none":
        return None
    pos = 0
    total = 0.0
    for match in _DURATION_RE.finditer(value):
        if match.start() != pos:
            raise ValueError(f"Invalid duration: {raw!r}")
        total += float(match.group(1)) * _DURATION_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(value):
        raise ValueError(f"Invalid duration: {raw!r}")
    return total


class Settings(BaseSettings):
    APP_NAME: str = "Dose Journal"
    MAX_LOGS_PER_USER: int = 100
    USE_SOURCE: str = "psychonautwiki"
    SOURCE_API_ADDRESS: str = PSYCHONAUTWIKI_ADDRESS
    AUTO_FETCH: bool = True
    AUTO_REMOVE: bool = False
    DB_DRIVER: str = SQLITE_DRIVER  # sqlite | mysql
    DB_DIR: Path = Path("data")
    DB_NAME: str = "gpd.db"
    MYSQL_ACCESS: str = "user:password@127.0.0.1:3306/database"
    SQLITE_BUSY_TIMEOUT_MS: int = 5000
    VERBOSE_PRINTING: bool = False
    TIMEZONE: str = "Local"
    PROXY_URL: str = ""
    TIMEOUT: str = "5s"
    COST_CURRENCY: str = ""
    DEFAULT_USERNAME: str = "defaultUser"
    NAMES_CONFIG_DIR: Path = Path(__file__).resolve().parent / "names_configs"
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def timeout_seconds(self) -> float | None:
        return parse_duration(self.TIMEOUT)

    @property
    def sqlite_path(self) -> Path:
        return self.DB_DIR / self.DB_NAME

    def validate_configuration(self) -> None:
        errors: list[str] = []
        if self.DB_DRIVER not in {SQLITE_DRIVER, MYSQL_DRIVER}:
            errors.append(f"DB_DRIVER must be {SQLITE_DRIVER!r} or {MYSQL_DRIVER!r}, got {self.DB_DRIVER!r}")
        if self.MAX_LOGS_PER_USER < 1 or self.MAX_LOGS_PER_USER > 2**31 - 1:
            errors.append("MAX_LOGS_PER_USER must be a positive 32-bit integer")
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", self.USE_SOURCE or ""):
            errors.append("USE_SOURCE must be a plain identifier, it names database tables")
        try:
            parse_duration(self.TIMEOUT)
        except ValueError as exc:
            errors.append(str(exc))
        if errors:
            joined = "; ".join(errors)
            raise RuntimeError(f"Invalid configuration: {joined}")


def configure_logging(verbose: bool | None = None) -> None:
    level = logging.DEBUG if (settings.VERBOSE_PRINTING if verbose is None else verbose) else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    for name in ("db", "services", "api"):
        logging.getLogger(name).setLevel(level)


settings = Settings()
