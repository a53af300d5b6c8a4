"""Exceptions raised across the accessor boundary."""


class MarketAuctionError(Exception):
    """Base class for every error the operator raises."""


class NotFound(MarketAuctionError):
    """The auction resource no longer exists (usually deleted concurrently)."""


class TransientAccessError(MarketAuctionError):
    """Reading or writing the resource failed; the whole reconcile should be retried."""


class InvalidResourceError(MarketAuctionError, ValueError):
    """The stored resource does not match the MarketAuctionJob schema."""
