"""Snapshot codec for categorical distributions.

A snapshot is the flat sequence ``[cat_1, w_1, ..., cat_k, w_k, scalar]``:
category/weight pairs most probable first, followed by the policy scalar
(capacity or learning rate).  An infinite scalar is written as ``None`` so
the snapshot maps directly onto JSON.
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Hashable, Iterable, List, Sequence, Tuple, Union

from .common import InvalidDumpError, coerce_float, is_hashable

logger = logging.getLogger(__name__)

JSON_BYTES_PREFIX = "__catdist_bytes__:"
INFINITE_SCALAR = None

Pairs = List[Tuple[Hashable, float]]


def encode_snapshot(pairs: Iterable[Tuple[Hashable, float]], scalar: float) -> List[object]:
    """Flatten ``pairs`` and append ``scalar`` (``inf`` becomes ``None``)."""

    snapshot: List[object] = []
    for category, weight in pairs:
        snapshot.append(category)
        snapshot.append(weight)
    snapshot.append(INFINITE_SCALAR if math.isinf(scalar) else scalar)
    return snapshot


def decode_snapshot(snapshot: object, *, strict: bool = False) -> Tuple[Pairs, float]:
    """Split a snapshot into ``(pairs, scalar)``.

    Raises :class:`InvalidDumpError` on anything but an odd-length sequence of
    hashable categories, finite non-negative weights and a numeric or ``None``
    scalar.  The probability order is trusted unless ``strict`` is set.
    """

    if isinstance(snapshot, (str, bytes, bytearray)) or not isinstance(snapshot, Sequence):
        raise InvalidDumpError(f"Snapshot must be a sequence, got {type(snapshot).__name__}")
    if len(snapshot) % 2 != 1:
        raise InvalidDumpError(
            f"Snapshot must have odd length (pairs plus a scalar), got {len(snapshot)}"
        )

    pairs: Pairs = []
    seen = set()
    for offset in range(0, len(snapshot) - 1, 2):
        category = snapshot[offset]
        weight = coerce_float(snapshot[offset + 1])
        if not is_hashable(category):
            raise InvalidDumpError(f"Category at position {offset} is not hashable")
        if category in seen:
            raise InvalidDumpError(f"Category {category!r} appears twice")
        if weight is None or not math.isfinite(weight) or weight < 0.0:
            raise InvalidDumpError(
                f"Weight of {category!r} must be a finite non-negative number, "
                f"got {snapshot[offset + 1]!r}"
            )
        seen.add(category)
        pairs.append((category, weight))

    raw_scalar = snapshot[-1]
    if raw_scalar is INFINITE_SCALAR:
        scalar = math.inf
    else:
        coerced = coerce_float(raw_scalar)
        if coerced is None or math.isnan(coerced):
            raise InvalidDumpError(f"Policy scalar must be a number or None, got {raw_scalar!r}")
        scalar = coerced

    if strict and not is_probability_ordered(pairs):
        raise InvalidDumpError("Snapshot pairs are not in probability order")
    return pairs, scalar


def is_probability_ordered(pairs: Sequence[Tuple[Hashable, float]]) -> bool:
    return all(pairs[i][1] >= pairs[i + 1][1] for i in range(len(pairs) - 1))


def _encode_category(value: object) -> object:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return JSON_BYTES_PREFIX + bytes(value).hex()
    if isinstance(value, tuple):
        return [_encode_category(item) for item in value]
    return value


def _decode_category(value: object) -> object:
    if isinstance(value, str) and value.startswith(JSON_BYTES_PREFIX):
        return bytes.fromhex(value[len(JSON_BYTES_PREFIX) :])
    if isinstance(value, list):
        # JSON has no tuples; lists only ever come from tuple categories.
        return tuple(_decode_category(item) for item in value)
    return value


def to_json(snapshot: Sequence[object], indent: Union[int, None] = None) -> str:
    """Serialise a snapshot; bytes and tuple categories survive the round trip."""

    encoded = [
        _encode_category(item) if position % 2 == 0 and position < len(snapshot) - 1 else item
        for position, item in enumerate(snapshot)
    ]
    return json.dumps(encoded, indent=indent, allow_nan=False)


def from_json(text: Union[str, bytes]) -> List[object]:
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidDumpError(f"Snapshot is not valid JSON: {exc}") from exc
    if not isinstance(decoded, list):
        raise InvalidDumpError("Snapshot JSON must be an array")
    return [
        _decode_category(item) if position % 2 == 0 and position < len(decoded) - 1 else item
        for position, item in enumerate(decoded)
    ]


def save_snapshot(path: Path, snapshot: Sequence[object]) -> Path:
    path = Path(path)
    path.write_text(to_json(snapshot) + "\n", encoding="utf-8")
    logger.debug("Wrote snapshot with %d categories to %s", len(snapshot) // 2, path)
    return path


def load_snapshot(path: Path) -> List[object]:
    path = Path(path)
    snapshot = from_json(path.read_text(encoding="utf-8"))
    logger.debug("Read snapshot with %d categories from %s", len(snapshot) // 2, path)
    return snapshot


__all__ = [
    "INFINITE_SCALAR",
    "JSON_BYTES_PREFIX",
    "decode_snapshot",
    "encode_snapshot",
    "from_json",
    "is_probability_ordered",
    "load_snapshot",
    "save_snapshot",
    "to_json",
]
