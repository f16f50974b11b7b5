"""Application settings loaded from environment variables or .env."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Default "no sabe / no contesta" codes for this survey design.
DEFAULT_NS_NC_VALUES = [99, 98, -1, 0]

# Hard cap on rows per store fetch.
DEFAULT_ROW_LIMIT = 3000


def _find_env_files() -> list[Path]:
    """Find .env files to load, searching upward from CWD and in the package dir.

    Checks (in priority order, last wins in pydantic-settings):
    1. The directory above the pulso package
    2. The current working directory, or the first parent that has one
    """
    candidates: list[Path] = []

    pkg_env = Path(__file__).resolve().parent.parent / ".env"
    if pkg_env.is_file():
        candidates.append(pkg_env)

    cwd = Path.cwd().resolve()
    for parent in [cwd, *cwd.parents]:
        env_path = parent / ".env"
        if env_path.is_file() and env_path not in candidates:
            candidates.append(env_path)
            break

    return candidates


class PulsoSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PULSO_",
        env_file=_find_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Store (hosted Postgres behind a PostgREST layer)
    store_url: str = ""  # e.g. https://abcd.supabase.co
    store_api_key: str = ""
    store_rest_path: str = "/rest/v1"
    request_timeout: float = 30.0

    # Tables
    survey_table: str = "encuestalol"
    questions_table: str = "preguntas"
    municipalities_table: str = "Municipios"

    # Aggregation
    row_limit: int = Field(default=DEFAULT_ROW_LIMIT, gt=0)
    ns_nc_values: list[int] = Field(default_factory=lambda: list(DEFAULT_NS_NC_VALUES))

    # Output
    output_dir: Path = Path("output")
    log_level: str = "INFO"  # log file level; terminal level comes from -v


def load_settings(**overrides: object) -> PulsoSettings:
    """Load settings with optional CLI overrides.

    ``None`` overrides are dropped so that unset CLI options fall through to
    the environment.
    """
    clean = {k: v for k, v in overrides.items() if v is not None}
    if "store_url" in clean and isinstance(clean["store_url"], str):
        clean["store_url"] = clean["store_url"].rstrip("/")
    return PulsoSettings(**clean)  # type: ignore[arg-type]
