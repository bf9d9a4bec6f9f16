"""
Named exceptions raised by the search and availability pipeline.
"""


class UpstreamUnavailableError(Exception):
    """Raised when a catalog, promotional or geolocation call fails."""


class RetryExhaustedError(UpstreamUnavailableError):
    """Raised when a retried upstream call keeps failing."""


class SearchCancelledError(Exception):
    """Raised when a search is abandoned before it completes."""


class InventoryModelError(Exception):
    """Raised for programmer errors such as evaluating a missing product."""
