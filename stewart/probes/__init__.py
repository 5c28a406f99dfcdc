"""Stateless probes for backends that need no persistent process."""

from __future__ import annotations

from stewart.probes.base import Probe, fan_out
from stewart.probes.files import FileProbe
from stewart.probes.registry import (
    HIVE_ALIASES,
    RegistryBackend,
    RegistryProbe,
    WinRegBackend,
    resolve_hive,
    split_key,
)

__all__ = [
    "Probe",
    "fan_out",
    "FileProbe",
    "HIVE_ALIASES",
    "RegistryBackend",
    "RegistryProbe",
    "WinRegBackend",
    "resolve_hive",
    "split_key",
]
