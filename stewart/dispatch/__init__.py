"""Backend partitioning and concurrent dispatch."""

from __future__ import annotations

from stewart.dispatch.coordinator import (
    DispatchCoordinator,
    Partition,
    partition,
    tier_concurrency,
)

__all__ = ["DispatchCoordinator", "Partition", "partition", "tier_concurrency"]
