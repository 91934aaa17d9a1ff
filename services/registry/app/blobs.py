from __future__ import annotations

from typing import IO

import sqlalchemy as sa

from services.registry.app.db import Database
from services.registry.app.errors import not_found
from services.registry.app.logging import logger
from services.registry.app.object_store import ObjectStore
from services.registry.app.observability import traced_operation
from services.registry.app.tables import blobs


class BlobManager:
    """
    Maps blob ids to retrievable URLs.

    A row in `blobs` means the object-store upload completed. The object store is not part
    of the database transaction: an upload followed by a failed insert leaves an orphan
    object, and a delete followed by a failed row delete leaves a dangling reference.
    Both windows are logged, neither is repaired here.
    """

    def __init__(self, db: Database, object_store: ObjectStore):
        self._db = db
        self._object_store = object_store

    @traced_operation("add_blob")
    async def add_blob(self, blob_id: str, content: bytes | IO[bytes], length: int) -> str:
        await self._object_store.put(blob_id, content, length)

        url = self._object_store.url_for(blob_id)
        try:
            async with self._db.unit_of_work() as session:
                await session.execute(sa.insert(blobs).values(key=blob_id, url=url))
        except Exception:
            logger.error("blob_orphaned", blob_id=blob_id)
            raise

        logger.info("blob_added", blob_id=blob_id, size=length)
        return blob_id

    @traced_operation("get_blob_url")
    async def get_blob_url(self, blob_id: str) -> str:
        async with self._db.unit_of_work() as session:
            url = (await session.execute(sa.select(blobs.c.url).where(blobs.c.key == blob_id))).scalar_one_or_none()
        if not url:
            raise not_found("Blob not found")
        return url

    @traced_operation("remove_blob")
    async def remove_blob(self, blob_id: str) -> None:
        await self._object_store.delete(blob_id)

        try:
            async with self._db.unit_of_work() as session:
                await session.execute(sa.delete(blobs).where(blobs.c.key == blob_id))
        except Exception:
            logger.error("blob_reference_dangling", blob_id=blob_id)
            raise

        logger.info("blob_removed", blob_id=blob_id)
