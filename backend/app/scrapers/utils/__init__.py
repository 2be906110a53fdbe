"""Scraper utilities for browser management, page pooling and rate limiting."""

from .rate_limiter import HostRateLimiter, TokenBucket
from .user_agents import (
    get_default_headers,
    get_desktop_user_agent,
    USER_AGENTS,
)


__all__ = [
    # Rate limiting
    "HostRateLimiter",
    "TokenBucket",
    # User agents
    "get_default_headers",
    "get_desktop_user_agent",
    "USER_AGENTS",
]
