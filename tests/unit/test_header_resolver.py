from __future__ import annotations

import pytest

from settlement_recon.classifiers.shopee import SHOPEE_SALES_SCHEMA
from settlement_recon.classifiers.tiktok import TIKTOK_SALES_SCHEMA
from settlement_recon.excel.headers import MissingColumnsError, normalize_header, resolve_headers


TIKTOK_HEADERS = [
    "Order ID",
    "Order Status",
    "Order Substatus",
    "Cancelation/Return Type",
    "SKU ID",
    "Quantity",
    "Sku Quantity of return",
    "SKU Subtotal Before Discount",
    "SKU Seller Discount",
]


def test_normalize_header_casefolds_and_collapses_whitespace():
    assert normalize_header("  Order   ID ") == "order id"


def test_resolve_headers_binds_aliases_case_insensitively():
    headers = resolve_headers([h.upper() for h in TIKTOK_HEADERS], TIKTOK_SALES_SCHEMA)
    assert headers["order_id"] == "ORDER ID"
    assert headers.column("subtotal") == "SKU SUBTOTAL BEFORE DISCOUNT"
    # optional field absent
    assert headers.column("province") is None


def test_first_alias_in_priority_order_wins():
    cols = [*TIKTOK_HEADERS, "Subtotal"]
    headers = resolve_headers(cols, TIKTOK_SALES_SCHEMA)
    assert headers["subtotal"] == "SKU Subtotal Before Discount"


def test_missing_columns_are_reported_together():
    cols = [h for h in TIKTOK_HEADERS if h not in ("SKU ID", "Quantity")]
    with pytest.raises(MissingColumnsError) as excinfo:
        resolve_headers(cols, TIKTOK_SALES_SCHEMA)
    err = excinfo.value
    assert err.missing == ["SKU ID", "Quantity"]
    assert err.platform == "TikTok"
    assert "SKU ID, Quantity" in str(err)
    assert isinstance(err, ValueError)


def test_missing_columns_use_the_primary_alias_of_each_field():
    schema = SHOPEE_SALES_SCHEMA.with_extra_aliases({"sku_code": ["รหัส SKU"]})
    with pytest.raises(MissingColumnsError) as excinfo:
        resolve_headers(["หมายเลขคำสั่งซื้อ"], schema)
    expected = [schema.primary_alias(n) for n in schema.fields if not schema.is_optional(n)]
    assert excinfo.value.missing == expected
    assert "รหัส SKU" not in expected

def test_extra_aliases_extend_the_schema():
    schema = SHOPEE_SALES_SCHEMA.with_extra_aliases({"sku_code": ["รหัส SKU"], "unknown": ["x"]})
    assert schema.fields["sku_code"][-1] == "รหัส SKU"
    assert "unknown" not in schema.fields
    # the original schema is untouched
    assert "รหัส SKU" not in SHOPEE_SALES_SCHEMA.fields["sku_code"]
