"""Per-document locks for attempt numbering."""

import threading
from collections import defaultdict


class DocumentLocks:
    """Hands out one re-entrant lock per document id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks = defaultdict(threading.RLock)

    def __call__(self, document_id: str):
        with self._guard:
            return self._locks[document_id]
