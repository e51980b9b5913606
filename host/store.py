from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from engine.errors import Conflict, InsufficientChips, NotFound
from engine.timestamps import now_ms

LOGGER = logging.getLogger("kcpoker.store")

Document = Dict[str, object]


class VersionMismatch(Exception):
    """A commit raced another writer; the caller should re-read and retry."""

    def __init__(self, table_id: str, expected: int, actual: int) -> None:
        super().__init__(f"{table_id}: expected version {expected}, found {actual}")
        self.table_id = table_id
        self.expected = expected
        self.actual = actual


@dataclass
class StoredTable:
    document: Document
    version: int
    secret: str


class InMemoryStore:
    """Authoritative table documents plus player wallets.

    Every read hands out a deep copy; every write is a compare-and-set on the
    table's version, applied together with any wallet movements it carries.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._lock = threading.RLock()
        self._tables: Dict[str, StoredTable] = {}
        self._wallets: Dict[str, int] = {}
        self.clock = clock

    @contextmanager
    def _write_lock(self) -> Iterator[None]:
        with self._lock:
            yield

    def server_time(self) -> int:
        return int(self.clock())

    # Tables ----------------------------------------------------------

    def create(
        self,
        table_id: str,
        document: Document,
        secret: str,
        wallet_deltas: Optional[Mapping[str, int]] = None,
    ) -> int:
        with self._write_lock():
            if table_id in self._tables:
                raise Conflict(f"Table {table_id} already exists")
            self._apply_wallets_unlocked(wallet_deltas or {})
            self._tables[table_id] = StoredTable(document=deepcopy(document), version=1, secret=secret)
            LOGGER.debug("Created table %s", table_id)
            return 1

    def read(self, table_id: str) -> Tuple[Document, int]:
        with self._lock:
            stored = self._tables.get(table_id)
            if stored is None:
                raise NotFound(f"Unknown table {table_id}")
            return deepcopy(stored.document), stored.version

    def secret(self, table_id: str) -> str:
        with self._lock:
            stored = self._tables.get(table_id)
            if stored is None:
                raise NotFound(f"Unknown table {table_id}")
            return stored.secret

    def version(self, table_id: str) -> int:
        return self.read(table_id)[1]

    def table_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._tables)

    def commit(
        self,
        table_id: str,
        document: Document,
        expected_version: int,
        wallet_deltas: Optional[Mapping[str, int]] = None,
    ) -> int:
        with self._write_lock():
            stored = self._tables.get(table_id)
            if stored is None:
                raise NotFound(f"Unknown table {table_id}")
            if stored.version != expected_version:
                raise VersionMismatch(table_id, expected_version, stored.version)
            self._apply_wallets_unlocked(wallet_deltas or {})
            stored.document = deepcopy(document)
            stored.version += 1
            return stored.version

    # Wallets ---------------------------------------------------------

    def balance(self, uid: str) -> int:
        with self._lock:
            return self._wallets.get(uid, 0)

    def deposit(self, uid: str, amount: int) -> int:
        with self._write_lock():
            self._apply_wallets_unlocked({uid: amount})
            return self._wallets[uid]

    def _apply_wallets_unlocked(self, deltas: Mapping[str, int]) -> None:
        # Validate every movement first so a failed debit leaves all wallets untouched.
        for uid, delta in deltas.items():
            if self._wallets.get(uid, 0) + delta < 0:
                raise InsufficientChips(f"Wallet of {uid} cannot cover {-delta}")
        for uid, delta in deltas.items():
            self._wallets[uid] = self._wallets.get(uid, 0) + delta
