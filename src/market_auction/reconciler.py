"""Reconciliation of a single MarketAuctionJob."""
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

from .accessor import AuctionAccessor, EventRecorder, WorkloadLauncher
from .auction import evaluate
from .crd import EVENT_WARNING, REASON_AUCTION_FAILED, REASON_INVALID_RESOURCE
from .errors import InvalidResourceError, NotFound
from .metrics import AUCTION_OUTCOMES, CLEARING_PRICE, EVENT_FAILURES, RECONCILE_LATENCY
from .models import AuctionState, ResourceIdentity
from .transition import SCHEDULING_LEAD_TIME, compute_transition

logger = logging.getLogger("market-auction.reconciler")


class Outcome(str, Enum):
    SCHEDULED = "scheduled"
    FAILED = "failed"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Reconciler:
    """Runs the auction for one resource per call.

    Holds no state between calls; ``status.state`` on the resource decides
    whether there is anything left to do.
    """

    def __init__(
        self,
        accessor: AuctionAccessor,
        recorder: EventRecorder,
        launcher: WorkloadLauncher,
        *,
        clock: Callable[[], datetime] = utcnow,
        lead_time: timedelta = SCHEDULING_LEAD_TIME,
    ):
        self.accessor = accessor
        self.recorder = recorder
        self.launcher = launcher
        self.clock = clock
        self.lead_time = lead_time

    async def reconcile(self, identity: ResourceIdentity) -> Outcome:
        """Fetch, auction and persist. TransientAccessError and cancellation propagate."""
        with RECONCILE_LATENCY.time():
            outcome = await self._reconcile(identity)
        AUCTION_OUTCOMES.labels(outcome=outcome.value).inc()
        return outcome

    async def _reconcile(self, identity: ResourceIdentity) -> Outcome:
        try:
            job = await self.accessor.fetch(identity)
        except NotFound:
            # deleted after the event was queued
            logger.info("MarketAuctionJob %s not found, nothing to do", identity)
            return Outcome.NOT_FOUND
        except InvalidResourceError as exc:
            logger.error("MarketAuctionJob %s ignored: %s", identity, exc)
            await self._emit(identity, EVENT_WARNING, REASON_INVALID_RESOURCE, str(exc))
            return Outcome.INVALID

        if job.status.state.is_terminal:
            logger.info("Job already processed: %s state=%s", identity, job.status.state.value)
            return Outcome.SKIPPED

        logger.info("Processing MarketAuctionJob %s with %d bid(s)", identity, len(job.spec.bids))
        decision = evaluate(job.spec.bids)
        transition = compute_transition(job.status, job.spec, decision, self.clock(), self.lead_time)
        if not transition.changed:
            return Outcome.SKIPPED

        status = transition.status
        if transition.notify:
            await self._emit(identity, EVENT_WARNING, REASON_AUCTION_FAILED, status.message)

        try:
            await self.accessor.update_status(identity, status, job.metadata.resource_version)
        except NotFound:
            logger.info("MarketAuctionJob %s deleted before its status could be written", identity)
            return Outcome.NOT_FOUND
        except Exception as exc:
            logger.error("Failed to update MarketAuctionJob %s status: %s", identity, exc)
            raise

        logger.info("Updated MarketAuctionJob %s status: %s", identity, status.state.value)

        if status.state is not AuctionState.SCHEDULED:
            return Outcome.FAILED

        CLEARING_PRICE.observe(status.clearing_price)
        await self.launcher.create_workload(job, decision)
        return Outcome.SCHEDULED

    async def _emit(self, identity: ResourceIdentity, severity: str, reason: str, message: str) -> None:
        # events are best effort and never fail a reconcile
        try:
            await self.recorder.emit(identity, severity, reason, message)
        except Exception as exc:
            EVENT_FAILURES.inc()
            logger.warning("could not post %s event %s for %s: %s", severity, reason, identity, exc)
