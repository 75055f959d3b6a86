# Overview: Document identifier generation for sales, invoices, products and adjustments.

from __future__ import annotations

import secrets
import time


def new_document_id(prefix: str) -> str:
    """
    Generate an opaque, collision-resistant document id, e.g. "S1739876543210a9f3c".

    Millisecond timestamp keeps ids roughly sortable by creation time; the random
    suffix separates documents created in the same millisecond. A retried write
    calls this again, so every attempt gets a fresh id.
    """
    if not prefix:
        raise ValueError("prefix is required")
    return f"{prefix}{int(time.time() * 1000)}{secrets.token_hex(3)}"


def new_adjustment_reference() -> str:
    """Reference used when a stock adjustment has no business document of its own."""
    return new_document_id("ADJ-")
