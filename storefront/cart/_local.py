"""
Local (anonymous) cart persistence.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from decimal import Decimal
from pathlib import Path
from typing import Any, Protocol

from storefront.models import CartLine, Product

logger = logging.getLogger(__name__)


class LocalCartStore(Protocol):
    def load(self) -> list[CartLine]: ...

    def save(self, lines: Sequence[CartLine]) -> None: ...


class MemoryCartStore:
    def __init__(self, lines: Sequence[CartLine] = ()) -> None:
        self._lines = list(lines)

    def load(self) -> list[CartLine]:
        return list(self._lines)

    def save(self, lines: Sequence[CartLine]) -> None:
        self._lines = list(lines)


def _encode(line: CartLine) -> dict[str, Any]:
    p = line.product
    return {
        "product": {
            "id": p.id,
            "name": p.name,
            "price": str(p.price),
            "discount": str(p.discount),
            "category": p.category,
            "in_stock": p.in_stock,
        },
        "quantity": line.quantity,
    }


def _decode(raw: dict[str, Any]) -> CartLine:
    p = raw["product"]
    return CartLine(
        product=Product(
            id=p["id"],
            name=p["name"],
            price=Decimal(p["price"]),
            discount=Decimal(p.get("discount") or "0"),
            category=p.get("category"),
            in_stock=p.get("in_stock", True),
        ),
        quantity=int(raw["quantity"]),
    )


class JsonFileCartStore:
    """Product snapshot + quantity per line, as a JSON list."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    def load(self) -> list[CartLine]:
        if not self._path.exists():
            return []
        try:
            return [_decode(raw) for raw in json.loads(self._path.read_text(encoding="utf-8"))]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable local cart %s: %s", self._path, e)
            return []

    def save(self, lines: Sequence[CartLine]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps([_encode(line) for line in lines]), encoding="utf-8")


__all__ = ("LocalCartStore", "MemoryCartStore", "JsonFileCartStore")
