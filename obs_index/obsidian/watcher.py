"""Vault file watcher using watchfiles.

Runs the watchfiles change stream on a background thread and forwards
markdown changes to the task source and the index service.
"""

import logging
import threading
from typing import Iterable, Optional, Set, Tuple

from watchfiles import Change, watch

from ..index.service import IndexService
from .vault import VaultTaskSource


class VaultWatcher:
    """Background watcher that keeps the task source and index current."""

    def __init__(
        self,
        source: VaultTaskSource,
        service: IndexService,
        logger: Optional[logging.Logger] = None,
    ):
        self.source = source
        self.service = service
        self.logger = logger or logging.getLogger(__name__)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            self.logger.warning("Vault watcher already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._watch_loop, name="obs-index-watcher", daemon=True)
        self._thread.start()
        self.logger.info(f"Watching {self.source.vault_path}")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.logger.info("Vault watcher stopped")

    def wait(self) -> None:
        """Block until the watcher stops."""
        while self._thread is not None and self._thread.is_alive():
            self._thread.join(0.5)

    def _watch_loop(self) -> None:
        try:
            for changes in watch(self.source.vault_path, stop_event=self._stop_event):
                try:
                    self.handle_changes(changes)
                except Exception as exc:
                    self.logger.error(f"Error handling vault changes: {exc}")
        except Exception as exc:
            self.logger.error(f"Vault watcher error: {exc}")

    def handle_changes(self, changes: Iterable[Tuple[Change, str]]) -> Set[str]:
        """Apply one batch of watchfiles changes. Returns the affected paths."""
        touched: Set[str] = set()
        for change_type, raw_path in changes:
            rel_path = self.source.relative_path(raw_path)
            if rel_path is None or not self.source.is_tracked(rel_path):
                continue

            if change_type == Change.deleted:
                self.source.remove_path(rel_path)
                self.service.schedule_delete_path(rel_path)
            else:
                self.source.refresh_path(rel_path)
                self.service.schedule_path(rel_path)
            touched.add(rel_path)

        if touched:
            self.logger.debug(f"Scheduled {len(touched)} changed note(s)")
        return touched
