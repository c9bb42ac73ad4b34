from __future__ import annotations

from ..excel.headers import ResolvedHeaders
from ..models.classified_row import ClassifiedRow, Disposition
from ..models.platform import Platform, PlatformSchema
from ..models.row_data import RowData
from .base import MISSING_PRODUCT_CODE, ParseContext, RowClassifier

"""Shopee product-sales classifier.

One row per order line. Rows in shipping or fully cancelled are ignored
outright; an accepted refund request turns the row into a return.
"""

__all__ = [
    "SHOPEE_SALES_SCHEMA",
    "ShopeeClassifier",
]

SHOPEE_SALES_SCHEMA = PlatformSchema(
    platform=Platform.SHOPEE,
    fields={
        "order_id": ("หมายเลขคำสั่งซื้อ", "Order Number", "Order ID", "เลขที่คำสั่งซื้อ"),
        "order_status": ("สถานะการสั่งซื้อ", "Order Status"),
        "sku_code": ("เลขอ้างอิง SKU (SKU Reference No.)", "SKU Reference No.", "SKU Reference"),
        "quantity": ("จำนวน", "จำนวนที่ขายได้ (ยืนยันแล้ว)", "Quantity"),
        "net_price": ("ราคาขายสุทธิ", "Net Price", "ยอดขาย (ยืนยันแล้ว) (THB)"),
        "seller_discount": ("โค้ดส่วนลดชำระโดยผู้ขาย", "Seller Voucher", "Seller Discount"),
        "refund_status": ("สถานะการคืนเงินหรือคืนสินค้า", "Refund/Return Status"),
        "refund_qty": ("จำนวนที่ส่งคืน", "Return Quantity", "Quantity Returned"),
        "province": ("จังหวัด", "Province", "จังหวัดผู้ซื้อ", "Buyer Province"),
        "order_date": ("วันที่ทำการสั่งซื้อ", "Order Creation Date"),
    },
    optional=frozenset({"order_id", "province", "order_date"}),
)

# order status に含まれていたら行ごと除外 (配送中 / キャンセル済)
IGNORED_STATUS_MARKERS = ("การจัดส่ง", "ยกเลิกแล้ว")
ACCEPTED_RETURN_STATUS = "คำขอได้รับการยอมรับแล้ว"


class ShopeeClassifier(RowClassifier):
    platform = Platform.SHOPEE
    schema = SHOPEE_SALES_SCHEMA

    def disposition(self, row: RowData, headers: ResolvedHeaders) -> Disposition:
        status = self.text(row, headers, "order_status")
        if any(marker in status for marker in IGNORED_STATUS_MARKERS):
            return Disposition.IGNORED
        if self.text(row, headers, "refund_status") == ACCEPTED_RETURN_STATUS:
            return Disposition.RETURNED
        return Disposition.CONFIRMED

    def classify(
        self, row: RowData, headers: ResolvedHeaders, ctx: ParseContext
    ) -> ClassifiedRow | None:
        disposition = self.disposition(row, headers)
        ctx.count(disposition)
        if not disposition.emitted:
            return None

        sku = self.text(row, headers, "sku_code")
        if not sku:
            ctx.warn(row.row_number, MISSING_PRODUCT_CODE, "missing product code, skipped")
            return None
        name = ctx.product_name(sku, row.row_number)
        if name is None:
            return None

        is_return = disposition is Disposition.RETURNED
        quantity = self.number(row, headers, "quantity", ctx)
        revenue = self.number(row, headers, "net_price", ctx) - self.number(
            row, headers, "seller_discount", ctx
        )
        refund_qty = self.number(row, headers, "refund_qty", ctx)
        province_raw, province = ctx.province(row.get(headers.column("province")))

        return ClassifiedRow(
            platform=self.platform,
            product_code=sku,
            product_name=name,
            quantity_confirmed=0.0 if is_return else quantity,
            quantity_returned=refund_qty if is_return else 0.0,
            revenue_confirmed=0.0 if is_return else revenue,
            row_number=row.row_number,
            disposition=disposition,
            order_id=self.text(row, headers, "order_id") or None,
            province_raw=province_raw,
            province_normalized=province,
            order_date=self.date(row, headers, "order_date"),
            entry_type=disposition.entry_type,
            raw=dict(row.values),
        )
