"""Vulnerability bank (JSON) loading."""

from __future__ import annotations

from stewart.bank.loader import CHECK_TYPES, build_bank, build_check, load_bank

__all__ = ["CHECK_TYPES", "build_bank", "build_check", "load_bank"]
