# core/diff.py
from typing import List, Sequence, Tuple

from .models import PriceQuote


def diff_quotes(
    previous: Sequence[PriceQuote], current: Sequence[PriceQuote]
) -> tuple[List[PriceQuote], List[PriceQuote], List[Tuple[PriceQuote, float, float]]]:
    """
    Compare two price lists of the same game, keyed by store.
    Returns:
      (new_stores, dropped_stores, price_changes[(quote_after, before, after)])
    """
    old_map = {q.store: q for q in previous}
    new_map = {q.store: q for q in current}

    added = [q for q in current if q.store not in old_map]
    removed = [q for q in previous if q.store not in new_map]

    price_changes: List[Tuple[PriceQuote, float, float]] = []
    for q in current:
        old = old_map.get(q.store)
        if old is None or old.price == q.price:
            continue
        price_changes.append((q, old.price, q.price))

    return added, removed, price_changes


def summarize_diff(
    added: List[PriceQuote],
    removed: List[PriceQuote],
    price_changes: List[Tuple[PriceQuote, float, float]],
) -> str:
    return (
        f"{len(added)} new stores · {len(removed)} dropped · "
        f"{len(price_changes)} price changes"
    )
