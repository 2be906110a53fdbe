"""Custom exception classes for the application."""


class NectarException(Exception):
    """Base exception for all Nectar errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ScraperError(NectarException):
    """Raised when a scraper encounters an error."""


class NavigationTimeout(ScraperError):
    """Raised when a page navigation exceeds its timeout."""

    def __init__(self, url: str, timeout_ms: int):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Navigation to {url} timed out after {timeout_ms}ms")


class NavigationError(ScraperError):
    """Raised on any other transport or DOM failure while rendering a page."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class ResolverExhausted(ScraperError):
    """Raised when no extraction strategy found a code on a reveal page."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No code found on reveal page {url}")


class SinkWriteFailure(NectarException):
    """Raised when the persistence sink rejects a write."""

    def __init__(self, domain: str, reason: str):
        self.domain = domain
        self.reason = reason
        super().__init__(f"Failed to save coupons for {domain}: {reason}")


class AllDomainsFailed(NectarException):
    """Raised when a whole scrape run finished without a single successful domain."""

    def __init__(self, summary=None):
        self.summary = summary
        failed = summary.failed if summary is not None else 0
        super().__init__(f"All domains failed to process ({failed} failed)")
