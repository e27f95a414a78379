"""Status command - summarize the last written index."""

import json
import logging

from ..core.config import IndexConfig, resolve_output_path
from ..index.writer import INDEX_SCHEMA_VERSION, SnapshotWriter, meta_path_for
from ..storage.adapter import FileAdapter
from ..storage.filesystem import LocalFileSystem


class StatusCommand:
    """Command for reporting the index sidecar metadata."""

    def __init__(self, config: IndexConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)

    def run(self, as_json: bool = False) -> bool:
        if not self.config.vault_path:
            print("No Obsidian vault is configured. Run 'obs-index setup' first.")
            return False

        output_path = resolve_output_path(self.config.index)
        writer = SnapshotWriter(FileAdapter(LocalFileSystem(self.config.vault_path)))
        meta = writer.read_meta(output_path)
        if meta is None:
            print(f"No index found at {output_path}. Run 'obs-index rebuild'.")
            return False

        if as_json:
            print(json.dumps(meta.to_dict(), indent=2, ensure_ascii=False))
            return meta.last_error is None

        print(f"📄 Index: {output_path}")
        print(f"   Metadata: {meta_path_for(output_path)}")
        print(f"   Generated: {meta.generated_at} (obs-index {meta.plugin_version})")
        print(f"   Tasks: {meta.task_count} in {meta.file_count} notes")
        print(f"   Hash: {meta.index_hash}")
        if meta.version != INDEX_SCHEMA_VERSION:
            print(f"⚠️  Schema version {meta.version} differs from current {INDEX_SCHEMA_VERSION}; run a rebuild")
        if meta.last_error:
            print(f"❌ Last error: {meta.last_error}")
            return False
        return True
