#!/usr/bin/env python3
"""
Global pytest configuration and fixtures.

This module provides:
- Custom markers for the test suite
- Temporary vault and config fixtures
- In-memory file system, timers and clock for service tests
"""

import os
import sys
import tempfile
import shutil
from datetime import datetime, timezone
from typing import Generator

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tests.fakes import FakeClock, ManualTimerFactory, MemoryFileSystem


SNAPSHOT_AT = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest environment."""
    config.addinivalue_line("markers", "integration: test touches the real file system")
    config.addinivalue_line("markers", "slow: test waits on real timers")


# Common test fixtures

@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for test isolation."""
    temp_path = tempfile.mkdtemp(prefix="obs_index_test_")
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def mock_obsidian_vault(temp_dir: str) -> str:
    """Create a mock Obsidian vault with test files."""
    vault_path = os.path.join(temp_dir, "test_vault")
    os.makedirs(os.path.join(vault_path, "notes"))
    os.makedirs(os.path.join(vault_path, ".obsidian"))

    daily_note = os.path.join(vault_path, "2024-03-10.md")
    with open(daily_note, 'w', encoding='utf-8') as f:
        f.write(
            "# Daily Note 2024-03-10\n"
            "\n"
            "## Tasks\n"
            "- [ ] Buy groceries 📅 2024-03-11 #personal\n"
            "- [x] Call dentist ✅ 2024-03-09 ^dentist\n"
            "\n"
            "Some notes here.\n"
        )

    project_file = os.path.join(vault_path, "notes", "Project Alpha.md")
    with open(project_file, 'w', encoding='utf-8') as f:
        f.write(
            "---\n"
            "status: ' '\n"
            "start: 2024-03-01\n"
            "deadline: 2024-03-20\n"
            "---\n"
            "# Project Alpha\n"
            "- [ ] Design phase 🛫 2024-03-01 09:30 #work/design\n"
        )

    # Plugin settings are not notes and must be ignored
    with open(os.path.join(vault_path, ".obsidian", "ignored.md"), 'w', encoding='utf-8') as f:
        f.write("- [ ] Should never be indexed\n")

    return vault_path


@pytest.fixture
def memory_fs() -> MemoryFileSystem:
    return MemoryFileSystem()


@pytest.fixture
def timers() -> ManualTimerFactory:
    return ManualTimerFactory()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
