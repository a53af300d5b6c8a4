"""Unit tests for status transitions."""
from datetime import datetime, timedelta, timezone

import pytest

from market_auction.auction import Decision, evaluate
from market_auction.models import AuctionState, AuctionStatus, Bid, MarketAuctionJob
from market_auction.transition import (
    NO_CANDIDATE_MESSAGE,
    SCHEDULING_LEAD_TIME,
    compute_transition,
)


@pytest.fixture
def job(make_body):
    return MarketAuctionJob.from_body(make_body())


def test_decision_schedules(job, now):
    decision = evaluate(job.spec.bids)

    transition = compute_transition(job.status, job.spec, decision, now)

    status = transition.status
    assert transition.changed and not transition.notify
    assert status.state is AuctionState.SCHEDULED
    assert status.scheduled_cluster == "cluster-b"
    assert status.allocated_gpus == 2
    assert status.clearing_price == 1.5
    assert status.start_time == now + timedelta(minutes=5)
    assert status.message == "Job scheduled on cluster cluster-b with 2 GPUs for $1.50"


def test_scheduled_status_keeps_invariants(job, now):
    decision = evaluate(job.spec.bids)

    status = compute_transition(job.status, job.spec, decision, now).status

    assert status.clearing_price == job.spec.bids[status.scheduled_cluster].price
    assert status.allocated_gpus == job.spec.job_request.resource_requirements.gpus


def test_no_decision_fails(job, now):
    transition = compute_transition(job.status, job.spec, None, now)

    assert transition.changed and transition.notify
    assert transition.status.state is AuctionState.FAILED
    assert transition.status.message == NO_CANDIDATE_MESSAGE
    assert transition.status.scheduled_cluster is None
    assert transition.status.clearing_price is None


@pytest.mark.parametrize("current", [
    AuctionStatus(state=AuctionState.FAILED, message="earlier failure"),
    AuctionStatus(state=AuctionState.SCHEDULED, scheduled_cluster="cluster-a", clearing_price=2.0),
])
def test_terminal_state_is_noop(job, now, current):
    decision = Decision("cluster-b", Bid(price=0.5))

    for _ in range(2):
        transition = compute_transition(current, job.spec, decision, now)

        assert transition.status is current
        assert not transition.changed
        assert not transition.notify


def test_deterministic(job, now):
    decision = evaluate(job.spec.bids)

    first = compute_transition(job.status, job.spec, decision, now)
    second = compute_transition(job.status, job.spec, decision, now)

    assert first == second


def test_custom_lead_time(job, now):
    decision = evaluate(job.spec.bids)

    status = compute_transition(job.status, job.spec, decision, now, lead_time=timedelta(seconds=30)).status

    assert status.start_time == now + timedelta(seconds=30)


def test_naive_now_is_utc(job):
    decision = evaluate(job.spec.bids)

    status = compute_transition(job.status, job.spec, decision, datetime(2024, 1, 1, 0, 0)).status

    assert status.start_time == datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc) + SCHEDULING_LEAD_TIME
