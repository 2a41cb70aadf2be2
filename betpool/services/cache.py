"""
Cache of computed rankings, kept consistent with the database.

Every write that changes ranking inputs (scored predictions, users,
memberships, competition winners) bumps the persisted data version in the
same transaction, whichever process makes it. Cached snapshots are tagged with
the version they were computed against and are only served while the stored
version is unchanged.

Values are immutable tuples of frozen UserAggregate objects. A newer version
swaps in a fresh mapping instead of clearing the old one, so a reader holding
the previous mapping keeps a consistent snapshot.
"""

import logging
import threading
from typing import Callable, Dict, Hashable, Optional, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from ..models.data_version import DataVersion
from ..timeutils import utcnow

logger = logging.getLogger(__name__)

DATA_VERSION_ID = 1


def current_data_version(db: Session) -> int:
    generation = db.exec(
        select(DataVersion.generation).where(DataVersion.id == DATA_VERSION_ID)
    ).first()
    return generation or 0


def bump_data_version(db: Session) -> None:
    """Record a change to ranking inputs. Committed by the caller."""
    statement = (
        update(DataVersion)
        .where(DataVersion.id == DATA_VERSION_ID)
        .values(generation=DataVersion.generation + 1, updated_at=utcnow())
    )
    if not db.connection().execute(statement).rowcount:
        db.add(DataVersion(id=DATA_VERSION_ID, generation=1))


def ensure_data_version(db: Session) -> None:
    """Create the version row on startup so concurrent writers only ever update it."""
    if db.get(DataVersion, DATA_VERSION_ID) is None:
        db.add(DataVersion(id=DATA_VERSION_ID, generation=0))
        db.commit()


class AggregateCache:

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, Tuple] = {}
        self._version: Optional[int] = None

    def get_or_compute(self, key: Hashable, compute: Callable[[], Tuple], version: int = 0) -> Tuple:
        """
        Serve the snapshot for `key` if it was computed at `version`, else compute it.

        `version` must be read before `compute` runs, so a stored snapshot is
        never older than its tag.
        """
        with self._lock:
            cached_version, entries = self._version, self._entries
        if cached_version == version and key in entries:
            return entries[key]

        value = tuple(compute())
        with self._lock:
            if self._version is None or version > self._version:
                self._version = version
                self._entries = {key: value}
                logger.debug("Aggregate cache moved to data version %d", version)
            elif version == self._version:
                self._entries = {**self._entries, key: value}
        return value
