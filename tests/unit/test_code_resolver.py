from __future__ import annotations

import pytest

from settlement_recon.services.code_resolver import CodeResolver, normalize_code, split_code


@pytest.mark.parametrize(
    "code",
    [
        "KL0-4010, 4008",
        "4008,KL0-4010",
        "KL0-4008,KL0-4010",
        "SKU-9",
        "  A1 ",
        "B2-1,\n7,3",
        "",
        "x,y,z",
        "AB12-5, 9, AB12-1",
    ],
)
def test_normalize_code_is_idempotent(code):
    once = normalize_code(code)
    assert normalize_code(once) == once


def test_normalize_code_prefixes_bare_numbers_and_sorts():
    assert normalize_code("KL0-4010, 4008") == "KL0-4008,KL0-4010"
    assert normalize_code("4008,KL0-4010") == "KL0-4008,KL0-4010"
    assert normalize_code("4008, 4010") == "4008,4010"
    assert normalize_code("A1") == "A1"


def test_split_code_handles_commas_and_newlines():
    assert split_code("a, b\nc\r\n,") == ["a", "b", "c"]


def test_equivalent_bundle_codes_resolve_to_the_same_name():
    resolver = CodeResolver({"KL0-4008,KL0-4010": "Kelp Duo"})
    names = {
        resolver.resolve("KL0-4010, 4008"),
        resolver.resolve("4008,KL0-4010"),
        resolver.resolve("KL0-4008,KL0-4010"),
    }
    assert names == {"Kelp Duo"}
    assert resolver.unresolved == []


def test_lookup_order_exact_then_normalized_then_individual():
    resolver = CodeResolver(
        {
            "A-1,A-2": "Bundle",
            "A-1": "Single",
        }
    )
    assert resolver.resolve("A-1") == "Single"  # exact beats individual
    assert resolver.resolve("A-2, A-1") == "Bundle"  # normalized
    assert resolver.resolve("A-2") == "Bundle"  # individual fallback


def test_individual_index_is_first_writer_wins():
    resolver = CodeResolver({"X-1,X-2": "First", "X-2,X-3": "Second"})
    assert resolver.resolve("X-2") == "First"


def test_misses_are_recorded_once_in_first_seen_order():
    resolver = CodeResolver({})
    assert resolver.resolve("B") is None
    assert resolver.resolve("A") is None
    assert resolver.resolve("B") is None
    assert resolver.unresolved == ["B", "A"]


def test_lookup_has_no_side_effects():
    resolver = CodeResolver({})
    assert resolver.lookup("nope") is None
    assert resolver.unresolved == []
