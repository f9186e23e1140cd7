from datetime import datetime
from typing import Optional

from sqlalchemy import Column, LargeBinary
from sqlmodel import Field, SQLModel


class DataSource(SQLModel):
    """A resource exposed by sdm, as kept in the local cache."""

    name: str = Field(min_length=1)
    status: str = ""
    address: str = ""
    type: str = ""
    tags: str = ""
    web_url: str = ""
    last_used_at: int = Field(default=0, ge=0)

    @property
    def key(self) -> str:
        return self.name

    @property
    def is_connected(self) -> bool:
        return self.status == "connected"

    @property
    def is_web(self) -> bool:
        return bool(self.web_url)

    def encode(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def decode(cls, payload: bytes) -> "DataSource":
        return cls.model_validate_json(payload)


class CacheBucketORM(SQLModel, table=True):
    __tablename__ = "cache_bucket"

    name: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class DataSourceRecordORM(SQLModel, table=True):
    __tablename__ = "datasource_record"

    bucket: str = Field(primary_key=True, foreign_key="cache_bucket.name")
    name: str = Field(primary_key=True)
    # Serialized DataSource; the cache never queries into it.
    payload: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    updated_at: Optional[datetime] = Field(default=None)
