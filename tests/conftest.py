"""
Pytest configuration and shared fixtures for Stewart tests.

This module provides:
- Temporary file/directory management
- A sample vulnerability bank
- In-memory registry and fake shell workers (see tests/fakes.py)
"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from tests.fakes import FakeRegistry, Tracker, fake_factory


SAMPLE_BANK = [
    {
        "ID": "OS-001",
        "CheckType": "Registry",
        "Description": "Autoplay is disabled",
        "Key": "HKLM\\SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Policies\\Explorer",
        "Value": "NoDriveTypeAutoRun",
        "FindData": "",
        "Operator": "Exists",
        "SecureValue": "255",
    },
    {
        "ID": "PS-001",
        "CheckType": "PowerShell",
        "Description": "SMBv1 is disabled",
        "CheckCommand": "(Get-SmbServerConfiguration).EnableSMB1Protocol",
        "SecureCommand": "Set-SmbServerConfiguration -EnableSMB1Protocol $false -Force",
        "FindData": "False",
        "Operator": "EqualTo",
    },
    {
        "ID": "FS-001",
        "CheckType": "File",
        "Description": "No default admin password in config",
        "Path": "C:\\app\\config.ini",
        "FindData": "password=admin",
        "Operator": "Contains",
        "SecureText": "password=",
    },
]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp(prefix="stewart_test_"))
    try:
        yield tmp
    finally:
        if tmp.exists():
            shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_bank_file(temp_dir: Path) -> Path:
    """Write the sample bank to disk and return its path."""
    path = temp_dir / "bank.json"
    path.write_text(json.dumps(SAMPLE_BANK, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def fake_registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def tracker() -> Tracker:
    return Tracker()


@pytest.fixture
def worker_factory(tracker: Tracker):
    """Factory of fake workers that all start successfully."""
    return fake_factory(tracker)


def pytest_configure(config):
    config.addinivalue_line("markers", "posix_shell: needs a real POSIX sh")
    config.addinivalue_line("markers", "windows: needs the Windows registry")
