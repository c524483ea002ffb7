# Overview: SKU allocation from a per-prefix counter row.

"""
SKU Service

FORMAT: <prefix><zero-padded number>, e.g. SKU-000001.

RULES:
- The first SKU for a prefix is number 1.
- Numbers are never reused, not even after the product is purged; the
  counter lives in sku_sequences, not in products.
- On first use of a prefix the counter is seeded from the lexicographically
  last existing SKU with that prefix, so catalogs created before the counter
  existed continue where they left off.

The counter is read-modify-written inside the caller's transaction. Callers
hold sku_allocation_lock(prefix) until they commit; the unique index on
products.sku guards across processes.
"""

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app

from ..extensions import db
from ..models import Product, SkuSequence
from ..validation import ValidationError
from .concurrency import entity_locks, lock_for_update


@contextmanager
def sku_allocation_lock(prefix: str):
    with entity_locks.hold(f"sku-seq:{prefix}"):
        yield


def format_sku(prefix: str, number: int, width: int) -> str:
    return f"{prefix}{number:0{width}d}"


def parse_sku_number(sku: str | None, prefix: str) -> int:
    """Numeric suffix of `sku`, or 0 when it has none."""
    if not sku or not sku.startswith(prefix):
        return 0
    suffix = sku[len(prefix):]
    if not suffix.isdigit():
        return 0
    return int(suffix)


def _seed_from_catalog(prefix: str) -> int:
    last_sku = (
        db.session.query(Product.sku)
        .filter(Product.sku.startswith(prefix, autoescape=True))
        .order_by(Product.sku.desc())
        .limit(1)
        .scalar()
    )
    return parse_sku_number(last_sku, prefix)


def next_sku(prefix: str | None = None, width: int | None = None) -> str:
    """
    Allocate the next SKU for `prefix` (defaults to SKU_PREFIX / SKU_WIDTH).

    Flushes but does not commit.
    """
    if prefix is None:
        prefix = current_app.config["SKU_PREFIX"]
    if width is None:
        width = current_app.config["SKU_WIDTH"]
    if not prefix:
        raise ValidationError("SKU prefix is required")
    if width <= 0:
        raise ValidationError("SKU width must be positive")

    seq = lock_for_update(
        db.session.query(SkuSequence).filter_by(prefix=prefix)
    ).first()
    if seq is None:
        seq = SkuSequence(prefix=prefix, last_number=_seed_from_catalog(prefix))
        db.session.add(seq)

    seq.last_number += 1
    db.session.flush()
    return format_sku(prefix, seq.last_number, width)
