from __future__ import annotations

import json
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sdm_ui.models import DataSource
from sdm_ui.proc import truncate
from sdm_ui.services.errors import MalformedOutputException

logger = logging.getLogger(__name__)


class StatusResource(BaseModel):
    """One entry of ``sdm status -j``."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    connection_status: str | None = None
    type: str | None = None
    tags: str | None = None
    address: str | None = None
    message: str | None = None
    web_url: str | None = None

    def to_datasource(self) -> DataSource:
        address = self.address or ""
        if not address:
            # tunnels and web resources report their location only in the message
            logger.debug("Using message as address for resource name=%s", self.name)
            address = self.message or ""
        return DataSource(
            name=self.name,
            status=self.connection_status or "",
            address=address,
            type=self.type or "",
            tags=self.tags or "",
            web_url=self.web_url or "",
        )


def parse_datasources(raw: str) -> list[DataSource]:
    if not raw.strip():
        logger.warning("Empty resource data received")
        return []

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse resources JSON sample=%r", truncate(raw, 100))
        raise MalformedOutputException(f"Invalid JSON from sdm status: {exc.msg}") from exc
    if not isinstance(payload, list):
        raise MalformedOutputException("sdm status must return a JSON array")

    try:
        resources = [StatusResource.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise MalformedOutputException(f"Unexpected resource entry in sdm status: {exc}") from exc

    datasources = [resource.to_datasource() for resource in resources]
    logger.debug("Parsed datasources count=%s", len(datasources))
    return datasources
