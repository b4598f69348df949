"""Application settings loaded from the environment and .env files.

Settings are built once by load_config() and validated eagerly, so an
invalid configuration fails before any component is constructed.
"""
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from dotenv import load_dotenv
from repo_quality.domain.exceptions import ConfigurationError
from repo_quality.domain.models import DIMENSIONS, ScoringWeights


WEIGHT_TOLERANCE = 0.01
HISTORY_BACKENDS = ("json", "postgres", "none")


@dataclass(frozen=True)
class Settings:
    """Validated, fully populated configuration."""
    github_token: Optional[str] = None
    github_url: str = "https://api.github.com/graphql"
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    max_repos_per_batch: int = 10
    concurrency: int = 3
    timeout: int = 30  # seconds
    min_quality_score: int = 50
    cache_enabled: bool = True
    cache_dir: Optional[str] = ".cache/repo_quality"
    cache_ttl: int = 86400  # seconds
    history_backend: str = "json"
    history_dir: str = ".history/repo_quality"
    postgres_dsn: str = "host=localhost port=5432 dbname=repo_quality user=postgres password=postgres"
    log_level: str = "INFO"

    def validate(self) -> 'Settings':
        """Check every invariant the pipeline relies on.

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: On the first violated constraint
        """
        for dimension, weight in self.weights.items():
            if not 0 <= weight <= 1:
                raise ConfigurationError(f"Scoring weight {dimension} must be between 0 and 1 (got {weight})")

        total = self.weights.total()
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ConfigurationError(f"Scoring weights must sum to 1.0 (currently: {total:.4f})")

        if not 1 <= self.max_repos_per_batch <= 100:
            raise ConfigurationError(
                f"max_repos_per_batch must be between 1 and 100 (got {self.max_repos_per_batch})"
            )
        if self.concurrency < 1:
            raise ConfigurationError(f"concurrency must be at least 1 (got {self.concurrency})")
        if self.timeout < 1:
            raise ConfigurationError(f"timeout must be at least 1 second (got {self.timeout})")
        if not 0 <= self.min_quality_score <= 100:
            raise ConfigurationError(
                f"min_quality_score must be between 0 and 100 (got {self.min_quality_score})"
            )
        if self.cache_ttl <= 0:
            raise ConfigurationError(f"cache_ttl must be positive (got {self.cache_ttl})")
        if self.history_backend not in HISTORY_BACKENDS:
            raise ConfigurationError(
                f"history_backend must be one of {', '.join(HISTORY_BACKENDS)} (got {self.history_backend})"
            )
        return self


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer (got {raw!r})")


def _get_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number (got {raw!r})")


def _get_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


def get_connection_string(environ: Mapping[str, str]) -> str:
    """Build PostgreSQL connection string from environment variables."""
    host = environ.get("POSTGRES_HOST", "localhost")
    port = environ.get("POSTGRES_PORT", "5432")
    database = environ.get("POSTGRES_DB", "repo_quality")
    user = environ.get("POSTGRES_USER", "postgres")
    password = environ.get("POSTGRES_PASSWORD", "postgres")

    return f"host={host} port={port} dbname={database} user={user} password={password}"


def load_config(env_file: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load and validate settings.

    Args:
        env_file: Explicit .env file; defaults to .env, then env
        environ: Variables to read instead of the process environment
            (no .env file is loaded when given)

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: If a value is malformed or out of range
    """
    if environ is None:
        if env_file:
            load_dotenv(env_file)
        else:
            # Load environment variables from .env or env file
            load_dotenv('.env') or load_dotenv('env')
        environ = os.environ

    defaults = ScoringWeights()
    weights = ScoringWeights(**{
        dimension: _get_float(environ, f"SCORING_WEIGHT_{dimension.upper()}", getattr(defaults, dimension))
        for dimension in DIMENSIONS
    })

    cache_dir = environ.get("CACHE_DIR", Settings.cache_dir)

    settings = Settings(
        github_token=environ.get("GITHUB_TOKEN") or None,
        github_url=environ.get("GITHUB_GRAPHQL_URL", Settings.github_url),
        weights=weights,
        max_repos_per_batch=_get_int(environ, "MAX_REPOS_PER_BATCH", Settings.max_repos_per_batch),
        concurrency=_get_int(environ, "ANALYSIS_CONCURRENCY", Settings.concurrency),
        timeout=_get_int(environ, "ANALYSIS_TIMEOUT", Settings.timeout),
        min_quality_score=_get_int(environ, "MIN_QUALITY_SCORE", Settings.min_quality_score),
        cache_enabled=_get_bool(environ, "CACHE_ENABLED", Settings.cache_enabled),
        cache_dir=cache_dir or None,
        cache_ttl=_get_int(environ, "CACHE_TTL", Settings.cache_ttl),
        history_backend=environ.get("HISTORY_BACKEND", Settings.history_backend).strip().lower(),
        history_dir=environ.get("HISTORY_DIR", Settings.history_dir),
        postgres_dsn=get_connection_string(environ),
        log_level=environ.get("LOG_LEVEL", Settings.log_level).upper()
    )
    return settings.validate()
