from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, Sequence

from sdm_ui.models import DataSource
from sdm_ui.proc import CommandError, CommandLaunchError, CommandTimeoutError
from sdm_ui.services.errors import NotFoundException, SdmUiException, SelectionCancelledException
from sdm_ui.services.notifier import Notifier
from sdm_ui.services.parser import parse_datasources
from sdm_ui.services.recovery import RecoveryController
from sdm_ui.services.sdm_client import SdmClient
from sdm_ui.services.selectors import FuzzySelector, MenuSelector
from sdm_ui.services.storage import CacheStorage

logger = logging.getLogger(__name__)

ADDRESS_WIDTH = 20
GLYPH_CONNECTED = "⚡"
GLYPH_DISCONNECTED = "🔌"
GLYPH_WEB = "🌐"


def ellipsize(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return f"{text[:max_len]}..."


def status_glyph(datasource: DataSource, *, show_web: bool = True) -> str:
    if show_web and datasource.is_web:
        return GLYPH_WEB
    if datasource.is_connected:
        return GLYPH_CONNECTED
    return GLYPH_DISCONNECTED


def render_table(datasources: Sequence[DataSource], *, with_headers: bool = True) -> str:
    rows = [(ds.name, ellipsize(ds.address, ADDRESS_WIDTH), status_glyph(ds)) for ds in datasources]
    if with_headers:
        rows = [("NAME", "ADDRESS", "STATUS"), ("----", "-------", "------"), *rows]
    if not rows:
        return ""
    name_width = max(len(row[0]) for row in rows)
    address_width = max(len(row[1]) for row in rows)
    lines = [
        f"{name.ljust(name_width)}  {address.ljust(address_width)}  {status}"
        for name, address, status in rows
    ]
    return "\n".join(lines) + "\n"


def compile_blacklist(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            logger.warning("Ignoring invalid blacklist pattern=%r: %s", pattern, exc)
    return compiled


def apply_blacklist(datasources: Sequence[DataSource], patterns: Iterable[str]) -> list[DataSource]:
    compiled = compile_blacklist(patterns)
    if not compiled:
        return list(datasources)
    logger.debug("Applying blacklist patterns=%s", [p.pattern for p in compiled])
    return [ds for ds in datasources if not any(p.search(ds.name) for p in compiled)]


def sort_by_recency(datasources: Iterable[DataSource]) -> list[DataSource]:
    return sorted(datasources, key=lambda ds: ds.last_used_at, reverse=True)


def name_from_entry(entry: str) -> str | None:
    fields = entry.split()
    if len(fields) < 2:
        return None
    return fields[0]


class DataSourceService:
    """Sync, list and connect the data sources of one sdm account."""

    def __init__(
        self,
        *,
        storage: CacheStorage,
        client: SdmClient,
        recovery: RecoveryController,
        notifier: Notifier,
        post_connect: Callable[[DataSource], None],
        blacklist_patterns: Sequence[str] = (),
        menu: MenuSelector | None = None,
        fuzzy: FuzzySelector | None = None,
    ) -> None:
        self.account = storage.account
        self.blacklist_patterns = list(blacklist_patterns)
        self._storage = storage
        self._client = client
        self._recovery = recovery
        self._notifier = notifier
        self._post_connect = post_connect
        self._menu = menu
        self._fuzzy = fuzzy
        self._account_checked = False

    def validate_account(self) -> None:
        if self._account_checked:
            return
        self._client.ensure_account(self.account)
        self._account_checked = True

    def sync(self) -> list[DataSource]:
        logger.debug("Syncing data sources account=%s", self.account)
        self.validate_account()
        raw = self._recovery.run(self._client.status)
        datasources = parse_datasources(raw)
        self._storage.store_datasources(datasources)
        logger.info("Synced data sources count=%s", len(datasources))
        return datasources

    def sorted_datasources(self) -> list[DataSource]:
        datasources = self._storage.list_datasources()
        if not datasources:
            logger.info("No data sources found, syncing...")
            self.sync()
            datasources = self._storage.list_datasources()
        return sort_by_recency(apply_blacklist(datasources, self.blacklist_patterns))

    def render_list(self, *, with_headers: bool = True) -> str:
        return render_table(self.sorted_datasources(), with_headers=with_headers)

    def connect(self, name: str) -> DataSource:
        try:
            datasource = self._storage.get_datasource(name)
        except (NotFoundException, ValueError) as exc:
            logger.warning("Data source not in cache name=%r", name)
            self._notifier.notify("🔐 Resource not found", name)
            raise NotFoundException(f"datasource not found: {name}") from exc

        self.validate_account()
        datasource = self._storage.update_last_used(datasource)
        logger.debug("Connecting to data source name=%s address=%s", datasource.name, datasource.address)
        self._recovery.run(lambda: self._client.connect(datasource.name))

        self._post_connect(datasource)

        try:
            self.sync()
        except (SdmUiException, CommandError, CommandTimeoutError, CommandLaunchError) as exc:
            logger.warning("Failed to sync data sources after connection: %s", exc)
        return datasource

    def dmenu(self) -> DataSource | None:
        if self._menu is None:
            raise SdmUiException("no menu command configured")
        entries = self.render_list(with_headers=False).splitlines()
        try:
            selection = self._menu.select(entries)
        except SelectionCancelledException:
            logger.debug("No selection made in menu")
            return None

        name = name_from_entry(selection)
        if name is None:
            logger.warning("Invalid selection, not enough fields selection=%r", selection)
            self._notifier.notify("🔐 Resource not found")
            return None
        try:
            return self.connect(name)
        except NotFoundException:
            return None

    def fzf(self) -> DataSource | None:
        if self._fuzzy is None:
            raise SdmUiException("fuzzy finder is not available")
        datasources = self.sorted_datasources()
        entries = [f"{status_glyph(ds, show_web=False)} {ds.name}" for ds in datasources]
        try:
            index = self._fuzzy.select(entries)
        except SelectionCancelledException:
            logger.debug("No selection made in fzf")
            return None
        logger.debug("Chosen data source name=%s", datasources[index].name)
        return self.connect(datasources[index].name)

    def wipe(self) -> list[str]:
        logger.debug("Wiping cache account=%s", self.account)
        return self._storage.wipe()
