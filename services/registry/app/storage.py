from __future__ import annotations

from services.registry.app.access_keys import AccessKeyStore
from services.registry.app.accounts import AccountRegistry
from services.registry.app.apps import AppManager
from services.registry.app.blobs import BlobManager
from services.registry.app.db import Database
from services.registry.app.deployments import DeploymentManager
from services.registry.app.logging import logger
from services.registry.app.object_store import ObjectStore, S3ObjectStore
from services.registry.app.observability import traced_operation
from services.registry.app.packages import PackageManager
from services.registry.app.settings import RegistrySettings


class Storage:
    """
    The registry's components wired over one shared database handle.

    Construct once per process (`from_settings`) and `close()` on shutdown to release
    the pooled connections.
    """

    def __init__(self, db: Database, object_store: ObjectStore):
        self.db = db
        self.accounts = AccountRegistry(db)
        self.access_keys = AccessKeyStore(db, self.accounts)
        self.apps = AppManager(db, self.accounts)
        self.deployments = DeploymentManager(db, self.apps)
        self.packages = PackageManager(db, self.deployments)
        self.blobs = BlobManager(db, object_store)

    @classmethod
    def from_settings(cls, settings: RegistrySettings) -> Storage:
        db = Database.from_settings(settings)
        object_store = S3ObjectStore(settings.aws_bucket_name, region=settings.aws_region)
        return cls(db, object_store)

    @traced_operation("check_health")
    async def check_health(self) -> None:
        await self.db.check_health()

    async def close(self) -> None:
        await self.db.close()
        logger.info("storage_closed")
