"""Status transitions for MarketAuctionJob.

Pure functions only: the caller supplies ``now`` so that the same inputs
always produce the same status.
"""
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

from .auction import Decision
from .models import AuctionSpec, AuctionState, AuctionStatus

SCHEDULING_LEAD_TIME = timedelta(minutes=5)
NO_CANDIDATE_MESSAGE = "Could not find a suitable cluster based on the provided bids."


class Transition(NamedTuple):
    status: AuctionStatus
    changed: bool  # status must be written back
    notify: bool  # a warning event must be emitted


def scheduled_message(cluster_id: str, gpus: int, price: float) -> str:
    return f"Job scheduled on cluster {cluster_id} with {gpus} GPUs for ${price:.2f}"


def compute_transition(
    current: AuctionStatus,
    spec: AuctionSpec,
    decision: Optional[Decision],
    now: datetime,
    lead_time: timedelta = SCHEDULING_LEAD_TIME,
) -> Transition:
    """Compute the status that follows ``current`` for the given auction decision.

    Terminal states are returned unchanged. Otherwise a decision schedules the
    job on the winning cluster and no decision fails it.
    """
    if current.state.is_terminal:
        return Transition(current, changed=False, notify=False)

    if decision is None:
        status = AuctionStatus(state=AuctionState.FAILED, message=NO_CANDIDATE_MESSAGE)
        return Transition(status, changed=True, notify=True)

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    # fixed lead; bid.max_time_until_start is not consulted
    gpus = spec.job_request.resource_requirements.gpus
    status = AuctionStatus(
        state=AuctionState.SCHEDULED,
        scheduled_cluster=decision.cluster_id,
        allocated_gpus=gpus,
        clearing_price=decision.bid.price,
        start_time=now + lead_time,
        message=scheduled_message(decision.cluster_id, gpus, decision.bid.price),
    )
    return Transition(status, changed=True, notify=False)
