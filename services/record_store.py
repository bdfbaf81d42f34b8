"""
services.record_store
~~~~~~~~~~~~~~~~~~~~~

In-memory, insertion-ordered collection of one entity kind.

The store owns identifier assignment and the create/read/update/remove
mechanics.  It knows nothing about *why* a removal may be disallowed; that
policy belongs to the service facades that wrap it.
"""

import copy
import logging
import re
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Generic, Iterable, List, Optional, Sequence, TypeVar

from core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class RecordStore(Generic[T]):
    def __init__(
        self,
        kind: str,
        entity_cls: Callable[..., T],
        prefix: str,
        id_floor: int = 100,
        required_fields: Sequence[str] = (),
        records: Iterable[T] = (),
    ):
        self.kind = kind
        self.entity_cls = entity_cls
        self.prefix = prefix
        self.id_floor = id_floor
        self.required_fields = tuple(required_fields)
        self.dirty = False
        # Held around read-modify-write-persist sequences by the facades
        self.lock = threading.RLock()

        self._records: Dict[str, T] = {}
        self._id_pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")

        for record in records:
            if record.id in self._records:
                logger.warning("Duplicate %s id %s on load, keeping the last one", kind, record.id)
            self._records[record.id] = record

    # ------------------------------------------
    # Identifier assignment
    # ------------------------------------------
    def next_id(self) -> str:
        """Return ``prefix + (max numeric suffix + 1)``.

        Ids that do not match ``<prefix><digits>`` are ignored.  The result
        never depends on how many records exist, so gaps left by deletions
        are never refilled.  Removing the highest id frees that number again.
        """
        highest = self.id_floor
        for record_id in self._records:
            match = self._id_pattern.match(record_id)
            if not match:
                continue
            highest = max(highest, int(match.group(1)))
        return f"{self.prefix}{highest + 1}"

    # ------------------------------------------
    # Create
    # ------------------------------------------
    def create(self, **fields) -> T:
        for name in self.required_fields:
            if _is_blank(fields.get(name)):
                raise ValidationError(name, f"{name} is required")

        record_id = self.next_id()
        record = self.entity_cls(id=record_id, **fields)
        self._records[record_id] = record
        self.dirty = True
        logger.debug("Created %s %s", self.kind, record_id)
        return record

    # ------------------------------------------
    # Read
    # ------------------------------------------
    def find_by_id(self, record_id: str) -> Optional[T]:
        if record_id is None:
            return None
        return self._records.get(record_id)

    def find_by_predicate(self, predicate: Callable[[T], bool]) -> List[T]:
        with self.lock:
            return [r for r in self._records.values() if predicate(r)]

    def list_all(self) -> List[T]:
        with self.lock:
            return list(self._records.values())

    def __contains__(self, record_id) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------
    # Update
    # ------------------------------------------
    def update(self, record_id: str, **fields) -> T:
        """Apply every given field, or none of them.

        All checks run before the first attribute is touched.
        """
        record = self.find_by_id(record_id)
        if record is None:
            raise NotFoundError(self.kind, record_id)

        for name, value in fields.items():
            if name == "id":
                raise ValidationError("id", f"{self.kind} id cannot be changed")
            if not hasattr(record, name):
                raise ValidationError(name, f"{self.kind} has no field {name!r}")
            if name in self.required_fields and _is_blank(value):
                raise ValidationError(name, f"{name} cannot be empty")

        for name, value in fields.items():
            setattr(record, name, value)

        self.dirty = True
        return record

    # ------------------------------------------
    # Remove
    # ------------------------------------------
    def remove(self, record_id: str) -> bool:
        if record_id not in self._records:
            return False
        del self._records[record_id]
        self.dirty = True
        return True

    # ------------------------------------------
    # Mutation scope
    # ------------------------------------------
    @contextmanager
    def mutation(self, persist: Callable[[List[T]], None]):
        """Run a mutation under the store lock and persist the result.

        If the block or the save raises, the in-memory collection is put
        back the way it was and the error propagates.
        """
        with self.lock:
            saved = copy.deepcopy(self._records)
            try:
                yield self
                persist(self.list_all())
            except Exception:
                self._records = saved
                raise
            self.dirty = False
