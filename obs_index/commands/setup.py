"""Setup command - write the obs-index configuration."""

import logging
import os
from typing import Optional

from ..core.config import IndexConfig, IndexSettings, resolve_output_path


class SetupCommand:
    """Command for configuring the vault and index settings."""

    def __init__(self, config: IndexConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(
        self,
        vault_path: Optional[str] = None,
        file_name: Optional[str] = None,
        folder: Optional[str] = None,
        debounce_ms: Optional[int] = None,
        include_raw: Optional[bool] = None,
        include_done: Optional[bool] = None,
        keep_done_days: Optional[int] = None,
        create_backup: Optional[bool] = None,
        enabled: Optional[bool] = None,
    ) -> bool:
        """Apply the given options to the configuration. Returns False on invalid input."""
        vault = vault_path or self.config.vault_path
        if not vault:
            try:
                vault = input("Path to your Obsidian vault: ").strip()
            except EOFError:
                vault = ""
        if not vault:
            print("❌ No vault path provided.")
            return False

        vault = os.path.abspath(os.path.expanduser(vault))
        if not os.path.isdir(vault):
            print(f"❌ Vault not found: {vault}")
            return False
        self.config.vault_path = vault

        settings = self.config.index.to_dict()
        overrides = {
            "file_name": file_name,
            "debounce_ms": debounce_ms,
            "include_raw": include_raw,
            "include_done": include_done,
            "keep_done_days": keep_done_days,
            "create_backup": create_backup,
            "enabled": enabled,
        }
        settings.update({key: value for key, value in overrides.items() if value is not None})
        if folder is not None:
            settings["output_to_default_folder"] = False
            settings["custom_output_folder"] = folder
        self.config.index = IndexSettings.from_dict(settings)

        index = self.config.index
        self.logger.debug(f"Index settings: {index.to_dict()}")
        print(f"✅ Vault: {vault}")
        print(f"   Index file: {resolve_output_path(index)}")
        print(f"   Debounce: {index.debounce_ms}ms, parsers: {', '.join(index.include_parsers)}")
        if index.keep_done_days:
            print(f"   Keeping closed tasks for {index.keep_done_days} days")
        if not index.enabled:
            print("   Index export is disabled")
        return True
