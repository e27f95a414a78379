"""Watch command - keep the task index current while the vault is edited."""

import logging
import time
from typing import Optional

from ..core.config import IndexConfig
from ..obsidian.watcher import VaultWatcher
from .rebuild import create_index_service, load_vault_source


class WatchCommand:
    """Command for running the incremental indexer in the foreground."""

    def __init__(self, config: IndexConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(self, duration: Optional[float] = None) -> bool:
        """Watch until interrupted, or for ``duration`` seconds when given."""
        if not self.config.index.enabled:
            print("ℹ️  Index export is disabled. Enable it with 'obs-index setup --enable'.")
            return False

        source = load_vault_source(self.config)
        if source is None:
            return False

        service = create_index_service(self.config, source)
        watcher = VaultWatcher(source, service)
        try:
            if service.rebuild_all():
                print(f"✅ Indexed {service.store.task_count} tasks from {service.store.file_count} notes")
            else:
                print(f"⚠️  Initial write failed, will retry: {service.last_error}")

            watcher.start()
            print(f"👀 Watching {source.vault_path} (Ctrl+C to stop)")
            if duration is not None:
                time.sleep(duration)
            else:
                watcher.wait()
        except KeyboardInterrupt:
            print("\nStopping watcher...")
        finally:
            watcher.stop()
            try:
                service.flush_pending()
            finally:
                service.dispose()
        return True
