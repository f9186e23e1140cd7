from __future__ import annotations

from datetime import datetime
import logging
import time
from typing import Iterable

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from sdm_ui.db import init_db
from sdm_ui.models import CacheBucketORM, DataSource, DataSourceRecordORM
from sdm_ui.services.errors import CacheException, ConfigurationException, NotFoundException

logger = logging.getLogger(__name__)

BUCKET_PREFIX = "datasource"
# Bump whenever the serialized DataSource layout changes.
CURRENT_VERSION = 2
RETENTION = 2


def bucket_key(account: str, version: int = CURRENT_VERSION) -> str:
    return f"{account}:{BUCKET_PREFIX}:v{version}"


class CacheStorage:
    """Per-account cache of DataSource records in a versioned bucket.

    Buckets are named ``<account>:datasource:v<version>``. Opening the storage
    creates the current bucket and drops buckets that are more than
    ``retention`` versions behind, plus legacy unversioned ones.
    """

    def __init__(
        self,
        account: str,
        engine: Engine,
        *,
        version: int = CURRENT_VERSION,
        retention: int = RETENTION,
    ) -> None:
        if not account:
            raise ConfigurationException("account cannot be empty")
        self.account = account
        self.version = version
        self.bucket = bucket_key(account, version)
        self._engine = engine

        try:
            init_db(engine)
            self._ensure_bucket()
        except SQLAlchemyError as exc:
            raise CacheException(f"Failed to initialize cache: {exc}") from exc

        try:
            self.remove_old_buckets(retention)
        except SQLAlchemyError:
            logger.warning("Failed to remove old buckets during initialization", exc_info=True)

    def _ensure_bucket(self) -> None:
        logger.debug("Ensuring bucket exists bucket=%s", self.bucket)
        with Session(self._engine) as session:
            if session.get(CacheBucketORM, self.bucket) is None:
                session.add(CacheBucketORM(name=self.bucket))
                session.commit()

    def _require_bucket(self, session: Session) -> None:
        if session.get(CacheBucketORM, self.bucket) is None:
            raise CacheException(f"Bucket not found: {self.bucket}")

    def store_datasources(self, datasources: Iterable[DataSource]) -> int:
        """Upsert records, keeping the last_used_at already cached for each name."""
        datasources = list(datasources)
        if not datasources:
            logger.debug("No datasources to store")
            return 0

        logger.debug("Storing datasources count=%s bucket=%s", len(datasources), self.bucket)
        stored = 0
        try:
            with Session(self._engine) as session:
                self._require_bucket(session)
                for ds in datasources:
                    row = session.get(DataSourceRecordORM, (self.bucket, ds.key))
                    if row is None:
                        row = DataSourceRecordORM(bucket=self.bucket, name=ds.key, payload=b"")
                    else:
                        try:
                            existing = DataSource.decode(row.payload)
                        except ValidationError:
                            logger.warning("Failed to decode existing datasource name=%s", ds.name)
                        else:
                            ds = ds.model_copy(update={"last_used_at": existing.last_used_at})
                    row.payload = ds.encode()
                    row.updated_at = datetime.utcnow()
                    session.add(row)
                    stored += 1
                session.commit()
        except SQLAlchemyError as exc:
            raise CacheException(f"Failed to store datasources: {exc}") from exc

        logger.debug("Stored datasources total=%s stored=%s", len(datasources), stored)
        return stored

    def list_datasources(self) -> list[DataSource]:
        logger.debug("Retrieving datasources bucket=%s", self.bucket)
        try:
            with Session(self._engine) as session:
                self._require_bucket(session)
                rows = session.exec(
                    select(DataSourceRecordORM)
                    .where(DataSourceRecordORM.bucket == self.bucket)
                    .order_by(DataSourceRecordORM.name)
                ).all()
        except SQLAlchemyError as exc:
            raise CacheException(f"Failed to read datasources: {exc}") from exc

        datasources: list[DataSource] = []
        for row in rows:
            try:
                datasources.append(DataSource.decode(row.payload))
            except ValidationError:
                logger.warning("Failed to decode datasource key=%s", row.name)
        logger.debug("Retrieved datasources count=%s", len(datasources))
        return datasources

    def get_datasource(self, name: str) -> DataSource:
        if not name:
            raise ValueError("datasource name cannot be empty")
        try:
            with Session(self._engine) as session:
                self._require_bucket(session)
                row = session.get(DataSourceRecordORM, (self.bucket, name))
        except SQLAlchemyError as exc:
            raise CacheException(f"Failed to read datasource {name}: {exc}") from exc
        if row is None:
            raise NotFoundException(f"datasource not found: {name}")
        try:
            return DataSource.decode(row.payload)
        except ValidationError as exc:
            raise CacheException(f"Failed to decode datasource {name}") from exc

    def update_last_used(self, datasource: DataSource, *, now: int | None = None) -> DataSource:
        if not datasource.name:
            raise ValueError("datasource name cannot be empty")
        timestamp = int(time.time()) if now is None else now
        updated = datasource.model_copy(
            update={"last_used_at": max(timestamp, datasource.last_used_at)}
        )
        logger.debug("Updating last used name=%s timestamp=%s", updated.name, updated.last_used_at)
        try:
            with Session(self._engine) as session:
                self._require_bucket(session)
                row = session.get(DataSourceRecordORM, (self.bucket, updated.key))
                if row is None:
                    row = DataSourceRecordORM(bucket=self.bucket, name=updated.key, payload=b"")
                row.payload = updated.encode()
                row.updated_at = datetime.utcnow()
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise CacheException(f"Failed to update datasource {updated.name}: {exc}") from exc
        return updated

    def remove_old_buckets(self, retention: int = RETENTION) -> list[str]:
        logger.debug("Removing old buckets retention=%s", retention)
        with Session(self._engine) as session:
            doomed = [
                bucket.name
                for bucket in session.exec(select(CacheBucketORM)).all()
                if self._is_expired(bucket.name, retention)
            ]
            for name in doomed:
                logger.debug("Removing bucket=%s", name)
                self._drop_bucket(session, name)
            session.commit()
        logger.debug("Removed old buckets count=%s", len(doomed))
        return doomed

    def _is_expired(self, name: str, retention: int) -> bool:
        parts = name.split(":")
        if len(parts) == 2:
            logger.debug("Found legacy bucket=%s", name)
            return True
        if len(parts) != 3 or parts[0] != self.account:
            return False
        version_text = parts[2]
        if not version_text.startswith("v"):
            logger.warning("Invalid version format in bucket=%s", name)
            return False
        try:
            version = int(version_text[1:])
        except ValueError:
            logger.warning("Failed to parse version of bucket=%s", name)
            return False
        return self.version - version > retention

    @staticmethod
    def _drop_bucket(session: Session, name: str) -> None:
        for row in session.exec(select(DataSourceRecordORM).where(DataSourceRecordORM.bucket == name)).all():
            session.delete(row)
        bucket = session.get(CacheBucketORM, name)
        if bucket is not None:
            session.delete(bucket)

    def wipe(self) -> list[str]:
        """Delete every bucket belonging to this account, whatever its version."""
        logger.debug("Wiping cache account=%s", self.account)
        try:
            with Session(self._engine) as session:
                doomed = [
                    bucket.name
                    for bucket in session.exec(select(CacheBucketORM)).all()
                    if bucket.name.startswith(f"{self.account}:")
                ]
                for name in doomed:
                    self._drop_bucket(session, name)
                session.commit()
        except SQLAlchemyError as exc:
            raise CacheException(f"Failed to wipe cache: {exc}") from exc
        logger.debug("Wiped buckets count=%s", len(doomed))
        return doomed
