"""First-price, lowest-bid-wins auction over a collected bid set."""
from typing import Mapping, NamedTuple, Optional, Tuple

from .models import Bid


class Decision(NamedTuple):
    """The winning cluster and the bid it won with."""

    cluster_id: str
    bid: Bid


def _rank(item: Tuple[str, Bid]) -> Tuple[float, str]:
    cluster_id, bid = item
    return bid.price, cluster_id


def evaluate(bids: Mapping[str, Bid]) -> Optional[Decision]:
    """Pick the cheapest bid, or None when nobody bid.

    Ties on price go to the lexicographically smallest cluster id, so the
    result never depends on the mapping's iteration order.
    """
    if not bids:
        return None
    cluster_id, bid = min(bids.items(), key=_rank)
    return Decision(cluster_id, bid)
