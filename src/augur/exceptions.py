"""Augur exception hierarchy.

All application-specific exceptions inherit from :class:`AugurError`.
Only invalid inputs reach the caller of ``PredictionEngine.predict``;
inference failures are caught inside the engine and degrade to the
statistical path.
"""

from __future__ import annotations


class AugurError(Exception):
    """Base exception for all Augur errors."""


# -- Configuration ----------------------------------------------------------


class ConfigError(AugurError):
    """Invalid or missing configuration."""


# -- Market data ------------------------------------------------------------


class MarketDataError(AugurError):
    """Problem with the ticks or candles supplied by the feed."""


class InvalidMarketDataError(MarketDataError):
    """Malformed or out-of-order tick/candle data."""


class InsufficientDataError(MarketDataError):
    """The buffer holds too little data to produce any prediction."""


class UnknownSymbolError(MarketDataError):
    """Symbol has no configuration and defaults are disabled."""


# -- External inference -----------------------------------------------------


class InferenceError(AugurError):
    """External inference request failed."""


class ExternalTimeoutError(InferenceError):
    """External inference exceeded its time bound."""


class MalformedExternalResponseError(InferenceError):
    """No structured opinion could be extracted from the response text."""
