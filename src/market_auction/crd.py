"""CRD schema constants."""

# CRD Group, Version, and Kind
GROUP = "bidspot.ai"
VERSION = "v1alpha1"
PLURAL = "marketauctionjobs"
KIND = "MarketAuctionJob"

# API version string
API_VERSION = f"{GROUP}/{VERSION}"

# Event severities, as understood by the core/v1 Event API
EVENT_WARNING = "Warning"

# Event reasons
REASON_AUCTION_FAILED = "AuctionFailed"
REASON_INVALID_RESOURCE = "InvalidResource"
