from __future__ import annotations

from ..excel.headers import ResolvedHeaders
from ..models.classified_row import ClassifiedRow, Disposition
from ..models.platform import Platform, PlatformSchema
from ..models.row_data import RowData
from .base import MISSING_PRODUCT_CODE, ParseContext, RowClassifier

"""TikTok Shop product-sales classifier.

Only rows whose order status and substatus are both "complete" are
considered. Within those, the cancellation/return type decides between a
confirmed sale, a return and an ignored row.
"""

__all__ = [
    "TIKTOK_SALES_SCHEMA",
    "TikTokClassifier",
]

TIKTOK_SALES_SCHEMA = PlatformSchema(
    platform=Platform.TIKTOK,
    fields={
        "order_status": ("Order Status",),
        "order_substatus": ("Order Substatus",),
        "cancel_type": ("Cancelation/Return Type", "Cancellation/Return Type", "Cancellation / Return Type"),
        "order_id": ("Order ID", "OrderID"),
        "sku_id": ("SKU ID", "Sku Id", "SkuID"),
        "quantity": ("Quantity", "Qty"),
        "returned_qty": ("Sku Quantity of return", "SKU Quantity of return", "Quantity of return", "Return Quantity"),
        # 列名が何度か変わっているため旧名も受け付ける
        "subtotal": (
            "SKU Subtotal Before Discount",
            "SKU Subtotal Before Discount (THB)",
            "SKU Subtotal",
            "Subtotal",
            "Sku Subtotal Before Discount",
        ),
        "seller_discount": ("SKU Seller Discount", "Seller Discount", "Sku Seller Discount"),
        "province": ("Province", "จังหวัด", "Buyer Province", "Delivery Province"),
        "order_date": ("Created Time", "Order Created Time"),
        "payment_date": ("Paid Time",),
    },
    optional=frozenset({"province", "order_date", "payment_date"}),
)

COMPLETE_STATUSES = frozenset({"เสร็จสมบูรณ์", "completed", "complete"})
CANCELLED_STATUSES = frozenset({"ยกเลิกแล้ว", "canceled", "cancelled"})
RETURN_CANCEL_TYPE = "Return/Refund"


class TikTokClassifier(RowClassifier):
    platform = Platform.TIKTOK
    schema = TIKTOK_SALES_SCHEMA

    def disposition(self, row: RowData, headers: ResolvedHeaders) -> Disposition:
        status = self.text(row, headers, "order_status").lower()
        substatus = self.text(row, headers, "order_substatus").lower()
        if status not in COMPLETE_STATUSES or substatus not in COMPLETE_STATUSES:
            if status in CANCELLED_STATUSES:
                return Disposition.CANCELLED
            return Disposition.IGNORED

        cancel_type = self.text(row, headers, "cancel_type")
        if cancel_type == "":
            return Disposition.CONFIRMED
        if cancel_type == RETURN_CANCEL_TYPE:
            return Disposition.RETURNED
        return Disposition.IGNORED

    def classify(
        self, row: RowData, headers: ResolvedHeaders, ctx: ParseContext
    ) -> ClassifiedRow | None:
        disposition = self.disposition(row, headers)
        ctx.count(disposition)
        if not disposition.emitted:
            return None

        sku = self.text(row, headers, "sku_id")
        if not sku:
            ctx.warn(row.row_number, MISSING_PRODUCT_CODE, "missing product code, skipped")
            return None
        name = ctx.product_name(sku, row.row_number)
        if name is None:
            return None

        is_return = disposition is Disposition.RETURNED
        quantity = self.number(row, headers, "quantity", ctx)
        revenue = self.number(row, headers, "subtotal", ctx) - self.number(
            row, headers, "seller_discount", ctx
        )
        returned = self.number(row, headers, "returned_qty", ctx)
        province_raw, province = ctx.province(row.get(headers.column("province")))

        return ClassifiedRow(
            platform=self.platform,
            product_code=sku,
            product_name=name,
            quantity_confirmed=0.0 if is_return else quantity,
            quantity_returned=returned if is_return else 0.0,
            revenue_confirmed=0.0 if is_return else revenue,
            row_number=row.row_number,
            disposition=disposition,
            order_id=self.text(row, headers, "order_id") or None,
            province_raw=province_raw,
            province_normalized=province,
            order_date=self.date(row, headers, "order_date"),
            payment_date=self.date(row, headers, "payment_date"),
            entry_type=disposition.entry_type,
            raw=dict(row.values),
        )
