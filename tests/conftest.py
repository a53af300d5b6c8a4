"""Common test fixtures and utilities."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from market_auction.accessor import AuctionAccessor, EventRecorder, WorkloadLauncher
from market_auction.errors import NotFound
from market_auction.models import MarketAuctionJob
from market_auction.reconciler import Reconciler

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def job_body(bids=None, status=None, name="test-job", namespace="default", gpus=2):
    """Raw MarketAuctionJob object as the API server returns it."""
    body = {
        "apiVersion": "bidspot.ai/v1alpha1",
        "kind": "MarketAuctionJob",
        "metadata": {"name": name, "namespace": namespace, "resourceVersion": "42", "uid": "uid-1"},
        "spec": {
            "jobRequest": {
                "name": name,
                "resourceRequirements": {"gpus": gpus, "memoryGiB": 16},
            },
            "bids": {
                "cluster-a": {"price": 2.0, "maxTimeUntilStart": "5m"},
                "cluster-b": {"price": 1.5, "maxTimeUntilStart": "10m"},
            } if bids is None else bids,
            "constraints": {"maximumRuntime": "1h", "isPreemptible": False},
        },
    }
    if status is not None:
        body["status"] = status
    return body


class InMemoryAccessor(AuctionAccessor):
    """Accessor double backed by a dict of raw bodies."""

    def __init__(self, *bodies):
        self.objects = {(b["metadata"]["namespace"], b["metadata"]["name"]): b for b in bodies}
        self.fetch_error = None
        self.update_error = None
        self.updates = []

    async def fetch(self, identity):
        if self.fetch_error is not None:
            raise self.fetch_error
        try:
            body = self.objects[tuple(identity)]
        except KeyError:
            raise NotFound(str(identity)) from None
        return MarketAuctionJob.from_body(body)

    async def update_status(self, identity, status, resource_version=None):
        if self.update_error is not None:
            raise self.update_error
        self.updates.append((identity, status, resource_version))
        self.objects[tuple(identity)]["status"] = status.to_wire()


class RecordingEventRecorder(EventRecorder):
    def __init__(self):
        self.events = []

    async def emit(self, identity, severity, reason, message):
        self.events.append((identity, severity, reason, message))


@pytest.fixture
def accessor():
    return InMemoryAccessor(job_body())


@pytest.fixture
def recorder():
    return RecordingEventRecorder()


@pytest.fixture
def launcher():
    return AsyncMock(spec=WorkloadLauncher)


@pytest.fixture
def reconciler(accessor, recorder, launcher):
    return Reconciler(accessor, recorder, launcher, clock=lambda: NOW)


@pytest.fixture
def mock_custom_api():
    """Mock CustomObjectsApi; every method is awaitable."""
    return AsyncMock()


@pytest.fixture
def mock_core_api():
    """Mock CoreV1Api; every method is awaitable."""
    return AsyncMock()


@pytest.fixture
def make_body():
    return job_body


@pytest.fixture
def now():
    return NOW
