"""Rebuild command - regenerate the whole task index once."""

import logging
import sys
from typing import Optional

from ..core.config import IndexConfig
from ..core.exceptions import VaultNotFoundError
from ..index.service import IndexService
from ..obsidian.vault import VaultTaskSource
from ..storage.filesystem import LocalFileSystem


def print_notice(message: str) -> None:
    print(f"⚠️  {message}", file=sys.stderr)


def create_index_service(config: IndexConfig, source: VaultTaskSource, **kwargs) -> IndexService:
    """IndexService writing into the configured vault and reading ``source``."""
    kwargs.setdefault("notify", print_notice)
    return IndexService(LocalFileSystem(config.vault_path), source.get_tasks, config, **kwargs)


def load_vault_source(config: IndexConfig) -> Optional[VaultTaskSource]:
    """Scan the configured vault, printing a hint when it is missing."""
    if not config.vault_path:
        print("No Obsidian vault is configured. Run 'obs-index setup' first.")
        return None
    source = VaultTaskSource(config.vault_path, config.ignore_dirs)
    try:
        source.load()
    except VaultNotFoundError as exc:
        print(f"❌ {exc}")
        return None
    return source


class RebuildCommand:
    """Command for writing a fresh snapshot of every task in the vault."""

    def __init__(self, config: IndexConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(self) -> bool:
        if not self.config.index.enabled:
            print("ℹ️  Index export is disabled. Enable it with 'obs-index setup --enable'.")
            return False

        source = load_vault_source(self.config)
        if source is None:
            return False

        service = create_index_service(self.config, source)
        try:
            if not service.rebuild_all():
                print(f"❌ {service.last_error or 'Index write failed'}")
                return False

            store = service.store
            print(f"✅ Indexed {store.task_count} tasks from {store.file_count} notes")
            print(f"   {service.adapter.resolve(service.output_path)}")
            if store.skipped_count:
                print(f"   Skipped {store.skipped_count} rows: {store.first_serialization_error()}")
            return True
        finally:
            service.dispose()
