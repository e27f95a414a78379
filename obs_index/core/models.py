"""
Domain models for obs-index.

This module contains the raw task records read from a vault, the normalized
rows written to the NDJSON snapshot, and the sidecar metadata describing a
snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TaskStatus(Enum):
    """Normalized task status."""

    TODO = "todo"
    DONE = "done"
    CANCELLED = "cancelled"
    EXCEPTION = "exception"
    UNKNOWN = "unknown"

    @property
    def is_open(self) -> bool:
        return self in (TaskStatus.TODO, TaskStatus.UNKNOWN)


@dataclass
class Task:
    """A task record as produced by a vault parser.

    ``line`` is 0-based; file-level records (frontmatter tasks) use -1.
    Dates are ISO strings exactly as written in the note.
    """

    file: str
    line: int
    content: str
    status_char: str = " "
    parser_id: str = "checkbox"
    start_date: Optional[str] = None
    start_time: Optional[str] = None
    end_date: Optional[str] = None
    end_time: Optional[str] = None
    deadline: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    original_text: str = ""
    block_id: Optional[str] = None
    timer_target_id: Optional[str] = None


@dataclass
class NormalizedTask:
    """One row of the exported index."""

    id: str
    content_hash: str
    parser: str
    source_path: str
    locator: str
    status: str
    content: str
    start: Optional[str] = None
    end: Optional[str] = None
    deadline: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    raw: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "contentHash": self.content_hash,
            "parser": self.parser,
            "sourcePath": self.source_path,
            "locator": self.locator,
            "status": self.status,
            "content": self.content,
            "start": self.start,
            "end": self.end,
            "deadline": self.deadline,
            "tags": self.tags,
        }
        if self.raw is not None:
            data["raw"] = self.raw
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> NormalizedTask:
        return cls(
            id=data["id"],
            content_hash=data["contentHash"],
            parser=data.get("parser", ""),
            source_path=data.get("sourcePath", ""),
            locator=data.get("locator", ""),
            status=data.get("status", TaskStatus.UNKNOWN.value),
            content=data.get("content", ""),
            start=data.get("start"),
            end=data.get("end"),
            deadline=data.get("deadline"),
            tags=list(data.get("tags", [])),
            raw=data.get("raw"),
        )


@dataclass
class IndexMeta:
    """Sidecar metadata written next to every snapshot."""

    version: int
    plugin_version: str
    generated_at: str
    task_count: int
    file_count: int
    index_hash: str
    path_hashes: Dict[str, str] = field(default_factory=dict)
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "pluginVersion": self.plugin_version,
            "generatedAt": self.generated_at,
            "taskCount": self.task_count,
            "fileCount": self.file_count,
            "indexHash": self.index_hash,
            "pathHashes": dict(self.path_hashes),
            "lastError": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> IndexMeta:
        return cls(
            version=int(data.get("version", 0)),
            plugin_version=str(data.get("pluginVersion", "")),
            generated_at=str(data.get("generatedAt", "")),
            task_count=int(data.get("taskCount", 0)),
            file_count=int(data.get("fileCount", 0)),
            index_hash=str(data.get("indexHash", "")),
            path_hashes=dict(data.get("pathHashes", {})),
            last_error=data.get("lastError"),
        )


@dataclass
class PathTransition:
    """Outcome of re-resolving the output path."""

    path_changed: bool
    old_path: Optional[str]
    new_path: str
    requires_rebuild: bool


@dataclass
class ProbeResult:
    """Outcome of a writability probe."""

    ok: bool
    retryable: bool = False
    message: str = ""
