"""Prometheus metrics + HTTP server."""
import logging
from threading import Thread

from prometheus_client import Counter, Histogram, start_http_server

RECONCILE_LATENCY = Histogram(
    "auction_reconcile_seconds",
    "End-to-end MarketAuctionJob reconcile latency seconds",
    buckets=(0.01, 0.05, 0.1, 0.2, 0.5, 1, 2, 5),
)
AUCTION_OUTCOMES = Counter(
    "auction_outcomes_total",
    "Reconcile outcomes by kind",
    ["outcome"],
)
CLEARING_PRICE = Histogram(
    "auction_clearing_price",
    "Clearing price of scheduled auctions",
    buckets=(0.1, 0.5, 1, 2, 5, 10, 25, 50, 100),
)
EVENT_FAILURES = Counter("auction_event_failures_total", "Events that could not be posted")


def start_metrics_server(port: int = 8000):
    logging.getLogger("market-auction.metrics").info("starting Prometheus HTTP server on :%d", port)
    Thread(target=start_http_server, args=(port,), daemon=True).start()
