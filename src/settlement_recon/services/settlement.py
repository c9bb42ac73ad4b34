from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from ..excel.cells import NumberCoercer, cell_text, normalize_date
from ..excel.headers import ResolvedHeaders, resolve_headers
from ..excel.reader import read_spreadsheet
from ..models.classified_row import ClassifiedRow, Disposition, RowIssue
from ..models.parse_result import SettlementResult
from ..models.platform import Platform, PlatformSchema
from ..models.row_data import RowData

"""Settlement statement (income report) parsing.

Statements carry money, not units: every statement line becomes one
CONFIRMED ClassifiedRow with revenue / fees / adjustments split according
to the platform's column lists below. Amounts keep the statement's sign
(fees are negative in all three exports).

The column lists double as the breakdown label registry in
``services.aggregation``; keep them in sync when an export adds a column.
"""

__all__ = [
    "MISSING_ORDER_ID",
    "SYNTHETIC_ORDER_ID",
    "SHOPEE_STATEMENT",
    "TIKTOK_STATEMENT",
    "LAZADA_STATEMENT",
    "StatementLayout",
    "parse_settlement",
    "parse_settlement_rows",
]

logger = logging.getLogger(__name__)

MISSING_ORDER_ID = "MISSING_ORDER_ID"
SYNTHETIC_ORDER_ID = "SYNTHETIC_ORDER_ID"

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class StatementLayout:
    """Column layout of one platform's settlement statement.

    Attributes:
        schema: Identity / date columns bound through the header resolver
        revenue_columns: Summed into ``revenue_confirmed``
        fee_columns: Summed into ``fees``
        adjustment_columns: Summed into ``adjustments``
        revenue_names: Transaction names counted as revenue (name/amount layouts)
        fee_names: Transaction names counted as fees (name/amount layouts)
    """
    schema: PlatformSchema
    revenue_columns: tuple[str, ...] = ()
    fee_columns: tuple[str, ...] = ()
    adjustment_columns: tuple[str, ...] = ()
    revenue_names: tuple[str, ...] = ()
    fee_names: tuple[str, ...] = ()


SHOPEE_SALES_COLUMNS = ("สินค้าราคาปกติ", "ส่วนลดสินค้าจากผู้ขาย", "จำนวนเงินที่ทำการคืนให้ผู้ซื้อ")
SHOPEE_DISCOUNT_COLUMNS = ("ส่วนลดสินค้าที่ออกโดย Shopee", "โค้ดส่วนลดที่ออกโดยผู้ขาย", "Coins Cashback ที่สนับสนุนโดยผู้ขาย")
SHOPEE_SHIPPING_COLUMNS = (
    "ค่าจัดส่งที่ชำระโดยผู้ซื้อ",
    "ค่าจัดส่งสินค้าที่ออกโดย Shopee",
    "ค่าจัดส่งที่ Shopee ชำระโดยชื่อของคุณ",
    "ค่าจัดส่งสินค้าคืน",
    "โปรแกรมประหยัดค่าจัดส่งคืนสินค้า",
    "ค่าจัดส่งสินค้าคืนผู้ขาย",
)
SHOPEE_FEE_COLUMNS = (
    "ค่าคอมมิชชั่น AMS",
    "ค่าคอมมิชชั่น",
    "ค่าบริการ",
    "ค่าธรรมเนียมโครงสร้างพื้นฐานแพลตฟอร์ม",
    "ค่าธรรมเนียม ของโปรแกรมประหยัดค่าจัดส่ง",
    "ค่าธุรกรรมการชำระเงิน",
)
SHOPEE_VAS_COLUMNS = (
    "ค่าบริการติดตั้งที่ชำระโดยผู้ซื้อ",
    "ค่าบริการติดตั้งจริงจากผู้ให้บริการ",
    "โบนัสส่วนลดเครื่องเก่าแลกใหม่จากผู้ขาย",
)

SHOPEE_STATEMENT = StatementLayout(
    schema=PlatformSchema(
        platform=Platform.SHOPEE,
        fields={
            "order_id": ("หมายเลขคำสั่งซื้อ", "Order ID"),
            "sku": ("SKU ร้านค้า", "Seller SKU"),
            "order_date": ("วันที่ทำการสั่งซื้อ", "Order Creation Date"),
            "payment_date": ("วันที่โอนชำระเงินสำเร็จ", "Payout Completed Date"),
        },
        optional=frozenset({"sku", "order_date", "payment_date"}),
    ),
    revenue_columns=SHOPEE_SALES_COLUMNS + SHOPEE_DISCOUNT_COLUMNS,
    fee_columns=SHOPEE_SHIPPING_COLUMNS + SHOPEE_FEE_COLUMNS + SHOPEE_VAS_COLUMNS,
)

TIKTOK_REVENUE_COLUMNS = (
    "Subtotal before discounts",
    "Seller discounts",
    "Refund subtotal after seller discounts",
)
TIKTOK_FEE_COLUMNS = (
    "Transaction fee",
    "TikTok Shop commission fee",
    "Credit card installment - Interest rate cost",
    "Seller shipping fee",
    "Affiliate Commission",
    "Affiliate partner commission",
    "Affiliate commission deposit",
    "Affiliate commission refund",
    "Affiliate Shop Ads commission",
    "Affiliate Partner shop ads commission",
    "SFP service fee",
    "Bonus cashback service fee",
    "LIVE Specials service fee",
    "Voucher Xtra service fee",
    "EAMS Program service fee",
    "Brands Crazy Deals/Flash Sale service fee",
    "TikTok PayLater program fee",
    "Commerce growth fee",
    "Infrastructure fee",
    "Campaign resource fee",
)
# エクスポート側の綴り (Ajustment) のまま
TIKTOK_ADJUSTMENT_COLUMNS = ("Ajustment amount",)

TIKTOK_STATEMENT = StatementLayout(
    schema=PlatformSchema(
        platform=Platform.TIKTOK,
        fields={
            "order_id": ("Order/adjustment ID", "Order/Adjustment ID"),
            "sku": ("Seller SKU",),
            "order_date": ("Order created time",),
            "payment_date": ("Order settled time",),
            "statement_type": ("Statement Type", "Type"),
        },
        optional=frozenset({"sku", "order_date", "payment_date", "statement_type"}),
    ),
    revenue_columns=TIKTOK_REVENUE_COLUMNS,
    fee_columns=TIKTOK_FEE_COLUMNS,
    adjustment_columns=TIKTOK_ADJUSTMENT_COLUMNS,
)

LAZADA_NAME_COLUMN = "ชื่อรายการธุรกรรม"
LAZADA_AMOUNT_COLUMN = "จำนวนเงิน(รวมภาษี)"
LAZADA_REVENUE_NAMES = ("ยอดรวมค่าสินค้า", "คืนส่วนลดค่าธรรมเนียมการขายสินค้า")
LAZADA_FEE_NAMES = (
    "หักค่าธรรมเนียมการขายสินค้า",
    "ค่าธรรมเนียมการชำระเงิน",
    "ส่วนลดค่าขนส่ง จ่ายโดยร้านค้า",
    "ส่วนต่างค่าจัดส่ง",
)

LAZADA_STATEMENT = StatementLayout(
    schema=PlatformSchema(
        platform=Platform.LAZADA,
        fields={
            "transaction_name": (LAZADA_NAME_COLUMN, "Transaction Type"),
            "amount": (LAZADA_AMOUNT_COLUMN, "Amount(Include Tax)", "Amount"),
            "order_id": ("หมายเลขคำสั่งซื้อ", "Order No.", "Order Number"),
            "sku": ("SKU ร้านค้า", "Seller SKU"),
            "order_date": ("วันที่สร้างคำสั่งซื้อ", "Order Creation Date"),
            "transaction_date": ("วันที่ทำรายการ", "Transaction Date"),
        },
        optional=frozenset({"order_id", "sku", "order_date", "transaction_date"}),
    ),
    revenue_names=LAZADA_REVENUE_NAMES,
    fee_names=LAZADA_FEE_NAMES,
)

LAYOUTS: dict[Platform, StatementLayout] = {
    Platform.SHOPEE: SHOPEE_STATEMENT,
    Platform.TIKTOK: TIKTOK_STATEMENT,
    Platform.LAZADA: LAZADA_STATEMENT,
}


class _StatementRun:
    """Per-call state: coercion counter and collected issues."""

    def __init__(self, layout: StatementLayout, headers: ResolvedHeaders) -> None:
        self.layout = layout
        self.headers = headers
        self.number = NumberCoercer()
        self.issues: list[RowIssue] = []

    @property
    def platform(self) -> Platform:
        return self.layout.schema.platform

    def warn(self, row: int, kind: str, message: str) -> None:
        self.issues.append(RowIssue(row=row, kind=kind, message=f"row {row}: {message}"))

    def text(self, row: RowData, field: str) -> str:
        return cell_text(row.get(self.headers.column(field)))

    def date(self, row: RowData, field: str) -> str | None:
        return normalize_date(row.get(self.headers.column(field)))

    def total(self, row: RowData, columns: Iterable[str]) -> float:
        return math.fsum(self.number(row.get(c)) for c in columns)

    def build(
        self,
        row: RowData,
        order_id: str,
        entry_type: str,
        revenue: float,
        fees: float = 0.0,
        adjustments: float = 0.0,
        order_date: str | None = None,
        payment_date: str | None = None,
    ) -> ClassifiedRow:
        sku = self.text(row, "sku")
        return ClassifiedRow(
            platform=self.platform,
            product_code=sku,
            product_name=sku,
            quantity_confirmed=0.0,
            quantity_returned=0.0,
            revenue_confirmed=revenue,
            row_number=row.row_number,
            disposition=Disposition.CONFIRMED,
            order_id=order_id,
            order_date=order_date,
            payment_date=payment_date,
            fees=fees,
            adjustments=adjustments,
            entry_type=entry_type,
            raw=dict(row.values),
        )


def _shopee_row(run: _StatementRun, row: RowData) -> ClassifiedRow | None:
    order_id = run.text(row, "order_id")
    if not order_id:
        run.warn(row.row_number, MISSING_ORDER_ID, "missing order id, skipped")
        return None
    layout = run.layout
    return run.build(
        row,
        order_id=order_id,
        entry_type="",
        revenue=run.total(row, layout.revenue_columns),
        fees=run.total(row, layout.fee_columns),
        order_date=run.date(row, "order_date"),
        payment_date=run.date(row, "payment_date"),
    )


def _tiktok_row(run: _StatementRun, row: RowData) -> ClassifiedRow | None:
    order_id = run.text(row, "order_id")
    if not order_id:
        run.warn(row.row_number, MISSING_ORDER_ID, "missing order id, skipped")
        return None
    layout = run.layout
    # 同一注文に Order / Refund など複数行あるので行番号で一意にする
    statement_type = run.text(row, "statement_type") or "Order"
    return run.build(
        row,
        order_id=order_id,
        entry_type=f"{statement_type}-ROW{row.row_number}",
        revenue=run.total(row, layout.revenue_columns),
        fees=run.total(row, layout.fee_columns),
        adjustments=run.total(row, layout.adjustment_columns),
        order_date=run.date(row, "order_date"),
        payment_date=run.date(row, "payment_date"),
    )


def _lazada_row(run: _StatementRun, row: RowData) -> ClassifiedRow | None:
    layout = run.layout
    n = row.row_number
    name = run.text(row, "transaction_name")
    amount = run.number(row.get(run.headers.column("amount")))
    order_date = run.date(row, "order_date") or run.date(row, "transaction_date")

    order_id = run.text(row, "order_id")
    if order_id:
        entry_type = f"{name}-ROW{n}"
    else:
        order_id = f"LAZADA-{_NON_ALNUM.sub('-', name)}-ROW{n}"
        entry_type = name
        run.warn(n, SYNTHETIC_ORDER_ID, f"missing order id, using synthetic id {order_id}")

    return run.build(
        row,
        order_id=order_id,
        entry_type=entry_type,
        revenue=amount if name in layout.revenue_names else 0.0,
        fees=amount if name in layout.fee_names else 0.0,
        order_date=order_date,
        payment_date=order_date,
    )


_ROW_PARSERS: dict[Platform, Callable[[_StatementRun, RowData], ClassifiedRow | None]] = {
    Platform.SHOPEE: _shopee_row,
    Platform.TIKTOK: _tiktok_row,
    Platform.LAZADA: _lazada_row,
}


def parse_settlement_rows(
    platform: Platform | str, rows: Iterable[RowData], columns: Iterable[str]
) -> SettlementResult:
    """Parse already-read settlement statement rows.

    Raises:
        MissingColumnsError: if identity columns required by the layout are absent
    """
    platform = Platform.parse(platform)
    layout = LAYOUTS[platform]
    headers = resolve_headers(columns, layout.schema)
    run = _StatementRun(layout, headers)
    parse_row = _ROW_PARSERS[platform]

    out: list[ClassifiedRow] = []
    for row in rows:
        parsed = parse_row(run, row)
        if parsed is not None:
            out.append(parsed)

    logger.debug(
        "%s statement: rows=%d skipped/flagged=%d coerced=%d",
        platform.value,
        len(out),
        len(run.issues),
        run.number.coerced,
    )
    return SettlementResult(
        rows=tuple(out),
        warnings=tuple(issue.message for issue in run.issues),
        coerced_cells=run.number.coerced,
        issues=tuple(run.issues),
    )


def parse_settlement(platform: Platform | str, data: bytes | Path) -> SettlementResult:
    """Parse a settlement statement export (first sheet, header on row 1)."""
    sheet = read_spreadsheet(data)
    return parse_settlement_rows(platform, sheet.rows, sheet.columns)
