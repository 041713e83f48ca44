"""Configuration module for the pageprobe crawler.

Provides Pydantic-based configuration management with environment variable support
and field validation. Every field can be overridden with a ``PAGEPROBE_``
prefixed environment variable or a ``.env`` file entry.

Example:
    >>> from pageprobe.core.config import Settings
    >>> settings = Settings(max_retries=1, retry_delay=0.5)
    >>> print(settings.max_redirects)
    5
"""

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36 pageprobe/0.1"
)

# Very-high-traffic third-party hosts whose liveness probes are unreliable
# (bot blocking, rate limiting) and uninformative for a broken-link report.
DEFAULT_SKIP_DOMAINS: tuple[str, ...] = (
    # Social media platforms
    "facebook.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "linkedin.com",
    "youtube.com",
    "tiktok.com",
    "pinterest.com",
    "snapchat.com",
    "whatsapp.com",
    # CDNs and asset hosts
    "googleapis.com",
    "cloudflare.com",
    "jsdelivr.net",
    "unpkg.com",
    "bootstrapcdn.com",
    # Large tech platforms, ads and analytics
    "microsoft.com",
    "apple.com",
    "amazon.com",
    "google.com",
    "doubleclick.net",
    "google-analytics.com",
    "googletagmanager.com",
    # Code hosting
    "github.com",
    "gitlab.com",
    "bitbucket.org",
)


class Settings(BaseSettings):
    """Crawler configuration.

    Attributes:
        timeout: Per-request timeout for the page fetch, in seconds
        user_agent: Client identifier sent with every request
        max_redirects: Maximum redirects followed before failing the fetch
        follow_redirects: Whether the page fetch follows redirects at all
        max_retries: Retries after the first attempt on transport failures
        retry_delay: Pause between fetch attempts, in seconds
        check_broken_links: Whether classified links are probed for liveness
        link_check_timeout: Per-probe timeout, in seconds
        link_check_concurrency: Maximum simultaneous in-flight probes
        link_check_max_redirects: Redirects a probe follows before stopping
        link_check_retries: Retries per probe on transport failures and 5xx
        link_check_retry_delay: Pause between probe attempts, in seconds
        link_check_delay: Politeness pause before each probe, in seconds
        link_check_ignore_statuses: Error statuses never reported as broken
        link_check_skip_domains: Hosts (and their subdomains) never probed
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional rotating log file path

    Raises:
        ValidationError: If values are out of range
    """

    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    max_redirects: int = 5
    follow_redirects: bool = True
    max_retries: int = 3
    retry_delay: float = 2.0

    check_broken_links: bool = True
    link_check_timeout: float = 10.0
    link_check_concurrency: int = 3
    link_check_max_redirects: int = 3
    link_check_retries: int = 0
    link_check_retry_delay: float = 1.0
    link_check_delay: float = 0.2
    link_check_ignore_statuses: list[int] = Field(default_factory=list)
    link_check_skip_domains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SKIP_DOMAINS)
    )

    log_level: str = "INFO"
    log_file: Path | None = None

    model_config = SettingsConfigDict(
        env_prefix="PAGEPROBE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    @field_validator("timeout", "link_check_timeout")
    @classmethod
    def validate_timeout(cls: type["Settings"], v: float) -> float:
        """Validate request timeouts are positive.

        Raises:
            ValueError: If the timeout is zero or negative
        """
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator(
        "max_redirects", "max_retries", "link_check_max_redirects", "link_check_retries"
    )
    @classmethod
    def validate_non_negative(cls: type["Settings"], v: int) -> int:
        """Validate retry and redirect limits are not negative."""
        if v < 0:
            raise ValueError("retry and redirect limits must be >= 0")
        return v

    @field_validator("retry_delay", "link_check_retry_delay", "link_check_delay")
    @classmethod
    def validate_delay(cls: type["Settings"], v: float) -> float:
        """Validate delays are not negative."""
        if v < 0:
            raise ValueError("delays must be >= 0")
        return v

    @field_validator("link_check_concurrency")
    @classmethod
    def validate_concurrency(cls: type["Settings"], v: int) -> int:
        """Validate the probe pool can make progress.

        Raises:
            ValueError: If link_check_concurrency is not positive
        """
        # At least one worker is needed to check any link
        if v <= 0:
            raise ValueError("link_check_concurrency must be positive")
        return v

    @field_validator("link_check_skip_domains")
    @classmethod
    def normalize_skip_domains(cls: type["Settings"], v: list[str]) -> list[str]:
        """Lowercase deny-list entries and drop leading dots."""
        return [d.strip().lower().lstrip(".") for d in v if d.strip()]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls: type["Settings"], v: str) -> str:
        """Validate log_level names a standard logging level.

        Raises:
            ValueError: If the level name is unknown
        """
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"invalid log_level: {v}")
        return level
