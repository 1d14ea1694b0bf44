"""
Local/cloud synchronization

Merges the local and cloud design lists into one view and pushes local
designs to the cloud.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from price_tag.errors import NotAuthenticated, PriceTagError, StorageFailure
from price_tag.models.design import DesignRecord, design_key
from price_tag.storage.local_store import LocalStore
from price_tag.storage.remote_store import RemoteStore

log = logging.getLogger(__name__)


def merged_view(local: Iterable[DesignRecord], remote: Iterable[DesignRecord]) -> List[DesignRecord]:
    """
    One list from local and cloud designs.

    Keys are the design id, else the product name. Local designs go in
    first and a cloud design replaces any local design with the same key,
    keeping the local design's position. No timestamps are compared: a stale
    cloud copy wins over a newer local edit. Designs without a key are
    dropped.
    """
    by_key: Dict[str, DesignRecord] = {}
    for record in list(local) + list(remote):
        key = design_key(record)
        if key:
            by_key[key] = record
    return list(by_key.values())


@dataclass
class MergedDesigns:
    designs: List[DesignRecord]
    remote_error: Optional[str] = None

    @property
    def remote_available(self) -> bool:
        return self.remote_error is None


@dataclass
class SyncTally:
    succeeded: int = 0
    failed: int = 0
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


@dataclass
class SaveOutcome:
    record: DesignRecord
    cloud_error: Optional[str] = None


class Synchronizer:
    """Reads and writes designs through the local store and, when present, the cloud store"""

    def __init__(self, local: LocalStore, remote: Optional[RemoteStore] = None):
        self.local = local
        self.remote = remote

    async def load_merged(self) -> MergedDesigns:
        local_designs = await self.local.list()
        if self.remote is None:
            return MergedDesigns(local_designs, remote_error="cloud store not configured")
        try:
            remote_designs = await self.remote.list()
        except NotAuthenticated as e:
            log.info("Cloud designs skipped: %s", e)
            return MergedDesigns(local_designs, remote_error=str(e))
        except StorageFailure as e:
            log.warning("Cloud designs unavailable: %s", e)
            return MergedDesigns(local_designs, remote_error=str(e))
        return MergedDesigns(merged_view(local_designs, remote_designs))

    async def save(self, record: DesignRecord, cloud: bool = False) -> SaveOutcome:
        """Save locally; with ``cloud`` also upload, reporting (not raising) a cloud failure"""
        stored = await self.local.put(record)
        if not cloud:
            return SaveOutcome(stored)
        if self.remote is None:
            return SaveOutcome(stored, cloud_error="cloud store not configured")
        try:
            await self.remote.put(stored)
        except (NotAuthenticated, StorageFailure) as e:
            log.warning("Saved %s locally only: %s", stored.id, e)
            return SaveOutcome(stored, cloud_error=str(e))
        return SaveOutcome(stored)

    async def delete(self, record_id: str, cloud: bool = False) -> bool:
        deleted = await self.local.delete(record_id)
        if cloud and self.remote is not None:
            deleted = await self.remote.delete(record_id) or deleted
        return deleted

    async def sync_local_to_remote(
        self,
        records: Optional[Iterable[DesignRecord]] = None,
        concurrency: int = 1,
    ) -> SyncTally:
        """
        Upload designs to the cloud, one failure never stopping the others.

        Args:
            records: Designs to upload (default: everything in the local store)
            concurrency: Uploads in flight at once; 1 uploads sequentially

        Returns:
            Tally of succeeded and failed uploads
        """
        if records is None:
            records = await self.local.list()
        records = list(records)
        tally = SyncTally()
        if self.remote is None:
            for index, record in enumerate(records):
                tally.failed += 1
                tally.errors[design_key(record) or f"#{index}"] = "cloud store not configured"
            return tally

        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def upload(index: int, record: DesignRecord) -> None:
            label = design_key(record) or f"#{index}"
            async with semaphore:
                try:
                    await self.remote.put(record)
                except PriceTagError as e:
                    log.warning("Failed to sync %s: %s", label, e)
                    tally.failed += 1
                    tally.errors[label] = str(e)
                    return
            tally.succeeded += 1

        if concurrency <= 1:
            for index, record in enumerate(records):
                await upload(index, record)
        else:
            await asyncio.gather(*(upload(i, r) for i, r in enumerate(records)))
        log.info("Synced %d designs to the cloud, %d failed", tally.succeeded, tally.failed)
        return tally
