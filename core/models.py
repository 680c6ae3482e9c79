# core/models.py
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .clock import parse_timestamp


@dataclass
class PriceQuote:
    """
    One store's price for a game, as returned by the last successful refresh.
    Prices are whole CLP amounts.
    """
    store: str
    price: float
    url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceQuote":
        price = data.get("price")
        if price is None:
            raise ValueError(f"price quote without a price: {data!r}")
        try:
            price = float(price)
        except OverflowError:
            raise ValueError(f"price out of range in quote: {data!r}") from None
        if not math.isfinite(price) or price < 0:
            raise ValueError(f"price must be a finite non-negative number: {data!r}")
        if price.is_integer():
            price = int(price)
        return cls(
            store=str(data.get("store") or ""),
            price=price,
            url=str(data.get("url") or ""),
        )


@dataclass
class Item:
    """
    A game in the catalog. There is one authoritative copy per id, owned by
    the CatalogStore; `last_update` stays None until a refresh succeeds.
    """
    id: str
    name: str
    platform: str = ""
    image: str = ""
    prices: List[PriceQuote] = field(default_factory=list)
    last_update: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        if data.get("id") is None:
            raise ValueError(f"game without an id: {data!r}")
        raw_prices = data.get("prices") or []
        last_update = data.get("lastUpdate")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            platform=str(data.get("platform") or ""),
            image=str(data.get("image") or ""),
            prices=[PriceQuote.from_dict(p) for p in raw_prices],
            last_update=parse_timestamp(last_update) if last_update else None,
        )
