from datetime import date
from decimal import Decimal

import pytest

from certifier.app.utils.hashing import (
    canonicalize_payload,
    compute_document_hash,
    hash_payload,
)


def test_canonical_json_is_sorted_and_compact():
    raw = canonicalize_payload({"type_": "Residency Certificate", "age": 33, "amount": "10.00"})

    assert raw == b'{"age":33,"amount":"10.00","type_":"Residency Certificate"}'


def test_canonical_json_keeps_non_ascii():
    raw = canonicalize_payload({"resident_name": "Niño Peñafrancia"})

    assert "Niño Peñafrancia".encode("utf-8") in raw


def test_canonical_json_serializes_decimals_and_dates():
    raw = canonicalize_payload({"amount": Decimal("10.00"), "on": date(2024, 6, 14)})

    assert raw == b'{"amount":"10.00","on":"2024-06-14"}'


def test_key_order_does_not_change_the_hash():
    first = hash_payload({"a": 1, "b": 2})
    second = hash_payload({"b": 2, "a": 1})

    assert first == second
    assert first.startswith("SHA-256:")
    assert len(first) == len("SHA-256:") + 64


def test_hash_requires_bytes():
    with pytest.raises(TypeError):
        compute_document_hash("not bytes")
