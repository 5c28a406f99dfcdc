"""
I/O and file operations modules.

Encoding-preserving reads, staged atomic writes and backed-up deletes.
"""

from __future__ import annotations

from stewart.io.file_ops import FO, Decoded, retry

__all__ = ["Decoded", "FO", "retry"]
