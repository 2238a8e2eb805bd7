from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from moodflix.client.storage import WATCHLIST_STORAGE_KEY, StoragePort, read_local_items

if TYPE_CHECKING:
    from moodflix.client.watchlist import WatchlistBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationResult:
    success: bool
    migrated: int
    errors: int
    total: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def has_local_watchlist_data(storage: StoragePort) -> bool:
    return local_watchlist_count(storage) > 0


def local_watchlist_count(storage: StoragePort) -> int:
    return len(read_local_items(storage))


def migrate_local_watchlist(storage: StoragePort, remote: WatchlistBackend) -> MigrationResult:
    """Copy the anonymous local watchlist into the signed-in user's server watchlist.

    Items are sent one at a time. A rejected item is counted and skipped. The
    local copy is removed once at least one item made it across, so a later
    sign-in finds nothing left to move.
    """

    try:
        items = read_local_items(storage)
    except Exception:
        logger.exception("Could not read the local watchlist")
        return MigrationResult(
            success=False, migrated=0, errors=1, total=0, message="Failed to migrate watchlist"
        )

    if not items:
        return MigrationResult(
            success=True, migrated=0, errors=0, total=0, message="No local watchlist items to migrate"
        )

    migrated = 0
    errors = 0
    for item in items:
        payload = {k: v for k, v in item.items() if k not in ("status", "status_before_completed")}
        payload["source"] = "migration"
        try:
            ok = remote.add_item(payload)
        except Exception:
            logger.exception("Migrating %r raised", item.get("title"))
            ok = False
        if ok:
            migrated += 1
        else:
            errors += 1
            logger.warning("Could not migrate %r", item.get("title") or item.get("tmdb_id"))

    if migrated > 0:
        storage.remove(WATCHLIST_STORAGE_KEY)

    message = f"Migrated {migrated} of {len(items)} watchlist items"
    if errors:
        message += f" ({errors} failed)"
    logger.info(message)
    return MigrationResult(success=True, migrated=migrated, errors=errors, total=len(items), message=message)
