# core/catalog.py
import datetime
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from backend.client import BackendError

from .errors import NetworkError, NotFoundError
from .logger import get_logger
from .models import Item, PriceQuote

logger = get_logger(__name__)


class CatalogStore:
    """
    The games known to the dashboard, in server order, plus the id of the
    game shown in the detail view.

    Selection is an id rather than a copy of the item, so an update applied
    to the catalog is what the detail view shows next.
    """

    def __init__(self, backend):
        self.backend = backend
        self._items: List[Item] = []
        self._index: Dict[str, Item] = {}
        self._selected_id: Optional[str] = None
        self._lock = threading.RLock()
        self.loading = False

    @property
    def items(self) -> Tuple[Item, ...]:
        with self._lock:
            return tuple(self._items)

    @property
    def selected_id(self) -> Optional[str]:
        with self._lock:
            return self._selected_id

    @property
    def selected(self) -> Optional[Item]:
        with self._lock:
            if self._selected_id is None:
                return None
            return self._index.get(self._selected_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def get(self, item_id: str) -> Optional[Item]:
        with self._lock:
            return self._index.get(str(item_id))

    def fetch_all(self) -> List[Item]:
        """
        Load the full catalog from the backend and replace the local copy.
        Raises NetworkError without touching the current state on failure.
        """
        self.loading = True
        try:
            try:
                raw = self.backend.list_games()
                items = [Item.from_dict(d) for d in raw]
            except BackendError as e:
                logger.error("Failed to load games: %s", e)
                raise NetworkError() from e
            except (TypeError, ValueError, AttributeError) as e:
                logger.error("Malformed game list from backend: %s", e)
                raise NetworkError() from e
        finally:
            self.loading = False

        with self._lock:
            self._items = items
            self._index = {it.id: it for it in items}
            if self._selected_id is not None and self._selected_id not in self._index:
                logger.info(
                    "Selected game %s is gone after reload; resetting selection",
                    self._selected_id,
                )
                self._selected_id = None
            if self._selected_id is None and items:
                self._selected_id = items[0].id

        logger.info("Catalog loaded: %d games", len(items))
        return list(items)

    def select(self, item_id: str) -> Item:
        item_id = str(item_id)
        with self._lock:
            item = self._index.get(item_id)
            if item is None:
                raise NotFoundError(item_id)
            self._selected_id = item_id
        logger.debug("Selected game %s (%s)", item_id, item.name)
        return item

    def apply_update(
        self,
        item_id: str,
        prices: Sequence[PriceQuote],
        timestamp: datetime.datetime,
    ) -> Item:
        """Replace the game's prices wholesale and stamp the update time."""
        item_id = str(item_id)
        with self._lock:
            item = self._index.get(item_id)
            if item is None:
                raise NotFoundError(item_id)
            item.prices = list(prices)
            item.last_update = timestamp
        return item
