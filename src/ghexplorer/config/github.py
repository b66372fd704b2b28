"""GitHub API configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger

from .env import optional_env_var
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

log = getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"


def _is_cacheable_payload(payload: object) -> bool:
    """Skip GitHub error documents (``{"message": ..., "documentation_url": ...}``)."""

    if not isinstance(payload, dict):
        return True
    return not ("documentation_url" in payload and "message" in payload)


@dataclass(frozen=True, slots=True)
class GitHubConfig:
    resilience: ResilienceConfig
    token: str | None = None
    per_page: int = 100

    @property
    def authenticated(self) -> bool:
        return self.token is not None


def get_github_config() -> GitHubConfig:
    token = optional_env_var("GITHUB_TOKEN")
    base_url = optional_env_var("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL
    if token is None:
        log.warning("No GITHUB_TOKEN configured; GitHub API calls will be heavily rate limited")

    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": "ghexplorer",
    }
    if token is not None:
        headers["Authorization"] = f"Bearer {token}"

    resilience = ResilienceConfig(
        name="github",
        base_url=base_url,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        retry=RetryPolicy(total=3),
        cache=CacheConfig(enabled=True, backend="memory", should_cache=_is_cacheable_payload),
        default_headers=headers,
    )
    return GitHubConfig(resilience=resilience, token=token)
