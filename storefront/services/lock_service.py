# storefront/services/lock_service.py
import threading
from typing import Dict

from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class ItemLockMap:
    """
    -blokada pozycji koszyka na czas zapytania (update/remove)
    -zwolnienie usuwa wpis, nie ustawia False, zeby mapa nie rosla
    -acquire dziala jak SET NX: True tylko gdy nikt nie trzyma locka
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._busy: Dict[int, bool] = {}

    def acquire(self, item_id: int) -> bool:
        with self._guard:
            if self._busy.get(item_id):
                logger.warning(f"Lock pozycji {item_id} juz zajety")
                return False
            self._busy[item_id] = True
            return True

    def release(self, item_id: int) -> bool:
        with self._guard:
            return self._busy.pop(item_id, None) is not None

    def is_locked(self, item_id: int) -> bool:
        with self._guard:
            return bool(self._busy.get(item_id))

    def snapshot(self) -> Dict[int, bool]:
        with self._guard:
            return dict(self._busy)

    def clear(self):
        with self._guard:
            self._busy.clear()

    def __len__(self) -> int:
        with self._guard:
            return len(self._busy)
