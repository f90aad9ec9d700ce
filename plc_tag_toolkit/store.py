"""
Persistence boundary for canonical tags.

The import and export paths never talk to a database directly.  They are
handed a :class:`TagStore`, which exposes the handful of operations they
need: find by ``(project_id, name)``, insert, update, list, and a
transaction scope.  :meth:`TagStore.upsert_tags` writes a whole validated
batch inside one transaction, so a failure partway through leaves the
store untouched.

:class:`InMemoryTagStore` is the reference implementation used by the
tests and the MCP tool server.
"""

from __future__ import annotations

import copy
import itertools
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator, List, Optional, Sequence, Union

from .errors import PersistenceError
from .models import CanonicalTag, Vendor

logger = logging.getLogger(__name__)


class TagStore(ABC):
    """Abstract tag store consumed by the import and export paths.

    Implementations raise :class:`~plc_tag_toolkit.errors.PersistenceError`
    on storage failures; callers let it propagate.
    """

    @abstractmethod
    def find_by_project_and_name(
        self, project_id: Optional[int], name: str
    ) -> Optional[CanonicalTag]:
        """Return the stored tag named *name* in *project_id*, or ``None``."""

    @abstractmethod
    def insert(self, tag: CanonicalTag) -> int:
        """Persist a new tag and return its id."""

    @abstractmethod
    def update(self, tag_id: int, tag: CanonicalTag) -> None:
        """Overwrite the fields of the stored tag *tag_id*."""

    @abstractmethod
    def list_tags(
        self, project_id: Optional[int], vendor: Union[Vendor, str, None] = None
    ) -> List[CanonicalTag]:
        """Return the tags of a project (optionally one vendor), by name."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator["TagStore"]:
        """Scope in which all writes commit together or not at all."""

    def upsert_tags(self, tags: Sequence[CanonicalTag]) -> int:
        """Insert or update every tag in one transaction.

        A tag whose ``(project_id, name)`` already exists is updated in
        place; others are inserted.  Tags absent from *tags* are left
        alone.

        Returns:
            The number of tags written.
        """
        with self.transaction():
            for tag in tags:
                existing = self.find_by_project_and_name(tag.project_id, tag.name)
                if existing is not None:
                    self.update(existing.id, tag)
                else:
                    self.insert(tag)
        logger.info("Upserted %d tags", len(tags))
        return len(tags)


class InMemoryTagStore(TagStore):
    """Dict-backed :class:`TagStore`.

    ``transaction()`` snapshots the tag table on entry and restores it if
    the block raises.  Nested transactions join the outer one.
    """

    def __init__(self) -> None:
        self._tags: Dict[int, CanonicalTag] = {}
        self._ids = itertools.count(1)
        self._depth = 0

    def find_by_project_and_name(self, project_id, name):
        for tag in self._tags.values():
            if tag.project_id == project_id and tag.name == name:
                return tag
        return None

    def insert(self, tag: CanonicalTag) -> int:
        tag_id = next(self._ids)
        self._tags[tag_id] = replace(tag, id=tag_id)
        return tag_id

    def update(self, tag_id: int, tag: CanonicalTag) -> None:
        if tag_id not in self._tags:
            raise PersistenceError(f"Tag id {tag_id} does not exist")
        self._tags[tag_id] = replace(tag, id=tag_id)

    def list_tags(self, project_id, vendor=None):
        vendor_value = Vendor.coerce(vendor).value if vendor else None
        tags = [
            t for t in self._tags.values()
            if t.project_id == project_id
            and (vendor_value is None or t.vendor == vendor_value)
        ]
        return sorted(tags, key=lambda t: t.name)

    @contextmanager
    def transaction(self):
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshot = copy.copy(self._tags)
        self._depth = 1
        try:
            yield self
        except Exception:
            self._tags = snapshot
            logger.warning("Transaction rolled back")
            raise
        finally:
            self._depth = 0

    def __len__(self) -> int:
        return len(self._tags)
