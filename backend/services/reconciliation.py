"""Snapshot reconciliation: bring local rows in line with an external snapshot.

The engine is shared by holdings and earn-position sync.  Given the local
rows and a freshly fetched snapshot it applies each snapshot item in its
own savepoint, then deletes local rows whose key no longer appears in the
snapshot.  A failure on one item is recorded and the loop moves on; only
the caller decides what is fatal.
"""

import logging
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from models import SyncLogEntry, User
from services.errors import NotFoundError, PriceUnavailableError

logger = logging.getLogger(__name__)

LocalT = TypeVar("LocalT")
ItemT = TypeVar("ItemT")


@dataclass
class ReconcileResult:
    """Counts and non-fatal errors of one reconciliation pass."""

    added: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "partial" if self.errors else "success"


class SnapshotReconciler(Generic[LocalT, ItemT]):
    """Add/update/delete diff of local rows against a snapshot.

    Args:
        label: Name used in log lines (e.g. ``"holdings"``).
        local_key: Identity key of a local row.
        item_key: Identity key of a snapshot item; must be comparable
            with ``local_key`` results.
    """

    def __init__(
        self,
        label: str,
        local_key: Callable[[LocalT], Hashable],
        item_key: Callable[[ItemT], Hashable],
    ):
        self.label = label
        self.local_key = local_key
        self.item_key = item_key

    def reconcile(
        self,
        db: Session,
        local_rows: Iterable[LocalT],
        snapshot: list[ItemT],
        apply_item: Callable[[Session, ItemT, LocalT | None], LocalT | None],
    ) -> ReconcileResult:
        """Apply *snapshot* to *local_rows*.

        ``apply_item(db, item, existing)`` creates or updates the local row
        for one snapshot item and returns it, or returns ``None`` to skip the
        item.  A skipped item still counts as present, so its local row (if
        any) is kept.

        Each item and each deletion runs in a savepoint; an exception rolls
        back only that savepoint and is recorded in ``errors``.
        """
        result = ReconcileResult()
        index: dict[Hashable, LocalT] = {self.local_key(row): row for row in local_rows}
        present: set[Hashable] = set()

        for item in snapshot:
            key = self.item_key(item)
            present.add(key)
            existing = index.get(key)
            try:
                with db.begin_nested():
                    row = apply_item(db, item, existing)
                    db.flush()
            except PriceUnavailableError as e:
                logger.warning("%s: %s", self.label, e)
                result.errors.append(str(e))
                continue
            except Exception as e:
                logger.error(
                    "%s: failed to process %s: %s", self.label, key, e, exc_info=True
                )
                result.errors.append(f"Failed to process {_describe(key)}: {e}")
                continue

            if row is None:
                result.skipped += 1
            elif existing is None:
                result.added += 1
                index[key] = row
            else:
                result.updated += 1

        for key, row in index.items():
            if key in present:
                continue
            try:
                with db.begin_nested():
                    db.delete(row)
                    db.flush()
                result.deleted += 1
                logger.info("%s: removed %s (no longer in snapshot)", self.label, _describe(key))
            except Exception as e:
                logger.error(
                    "%s: failed to delete %s: %s", self.label, key, e, exc_info=True
                )
                result.errors.append(f"Failed to delete {_describe(key)}: {e}")

        logger.info(
            "%s reconciled: %d added, %d updated, %d deleted, %d skipped, %d errors",
            self.label, result.added, result.updated, result.deleted,
            result.skipped, len(result.errors),
        )
        return result


def _describe(key: Hashable) -> str:
    if isinstance(key, tuple):
        return "/".join(str(part) for part in key)
    return str(key)


def require_user(db: Session, user_id: str) -> User:
    """Return the user or raise ``NotFoundError``."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def record_sync(
    db: Session,
    user_id: str,
    sync_type: str,
    status: str,
    added: int = 0,
    updated: int = 0,
    deleted: int = 0,
    errors: list[str] | None = None,
) -> SyncLogEntry:
    """Add a ``SyncLogEntry`` for a finished (or failed) run; the caller commits."""
    entry = SyncLogEntry(
        user_id=user_id,
        sync_type=sync_type,
        status=status,
        added=added,
        updated=updated,
        deleted=deleted,
        error_messages=list(errors) if errors else None,
    )
    db.add(entry)
    return entry


def record_failed_sync(db: Session, user_id: str, sync_type: str, error_msg: str) -> None:
    """Persist a failed log entry for a run that aborted before writing anything."""
    record_sync(db, user_id, sync_type, "failed", errors=[error_msg])
    db.commit()
