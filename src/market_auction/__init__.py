"""Market auction operator: schedules auction jobs onto the lowest bidding cluster."""

__version__ = "0.1.0"
