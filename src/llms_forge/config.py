"""Configuration settings for llms-forge."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


def _default_data_dir() -> Path:
    """Get default data directory (~/.llms-forge/)."""
    return Path.home() / ".llms-forge"


class Settings(BaseSettings):
    """llms-forge configuration.

    Environment variables:
    - USER_AGENT: User-Agent sent with every outbound request
    - DISCOVERY_TIMEOUT_MS: Wall-clock budget for one discovery run (default 30000)
    - PROBE_TIMEOUT: Per-request timeout for quick checks, seconds (default 5)
    - FETCH_TIMEOUT: Per-request timeout for content fetches, seconds (default 15)
    - BATCH_SIZE: Candidates verified concurrently per batch (default 8)
    - MAX_CANDIDATES: Hard cap on candidates verified per run (default 100)
    - CACHE_ENABLED / CACHE_TTL / CACHE_DIR: Service-layer result cache
    - TOOL_TIMEOUT: Hard timeout per MCP tool call, seconds (0 = no timeout)
    - ALLOW_PRIVATE_HOSTS: Allow tools to fetch loopback/private addresses
    """

    # Outbound HTTP
    user_agent: str = "llms-forge/1.0 (Intelligent Documentation Discovery)"
    probe_timeout: float = 5.0
    fetch_timeout: float = 15.0

    # Discovery
    discovery_timeout_ms: int = 30000
    batch_size: int = Field(default=8, ge=1)
    max_candidates: int = Field(default=100, ge=1)
    max_sitemaps: int = 3
    sitemap_max_depth: int = 2
    # Seconds in-flight requests may keep running once the budget is spent
    cancel_grace_period: float = 1.0

    # Sibling llms-*.txt fetching
    linked_fetch_concurrency: int = Field(default=5, ge=1)

    # Result cache (service layer only)
    cache_enabled: bool = True
    cache_ttl: int = 300
    cache_dir: str = ""  # Default: ~/.llms-forge

    # Tool execution timeout (seconds, 0 = no timeout)
    tool_timeout: int = 120
    allow_private_hosts: bool = False

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    def get_data_dir(self) -> Path:
        """Get data directory.

        Uses CACHE_DIR if set, otherwise ~/.llms-forge/.
        """
        if self.cache_dir:
            return Path(self.cache_dir).expanduser()
        return _default_data_dir()

    def get_cache_db_path(self) -> Path:
        """Get resolved result cache database path."""
        return self.get_data_dir() / "cache.db"


settings = Settings()
