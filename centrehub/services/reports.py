"""
Balance sheet reports and their CSV, PDF and Excel exports.
"""
import csv
import io
from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from ..schemas.analytics import BalanceSheet, BalanceSheetSummary, CentreBreakdown, ReportFilters
from ..schemas.expenses import ExpenseResponse
from .rollup import _amount, _field, _localize, _sum, _timestamp


REPORT_TITLE = "Aaryavart Centre - Balance Sheet"
ALL_TIME = "All Time"
BRAND_PURPLE = colors.HexColor("#8C5BAA")
BRAND_BROWN = colors.HexColor("#4A3C2D")
XLSX_PURPLE = "8C5BAA"
RUPEE_FORMAT = "\"₹\"#,##0.00"

EXPENSE_CSV_HEADERS = ["Date", "Item", "Category", "Amount", "Payment Method", "Centre", "Added By", "Note"]


def _day_bound(day, t: time, reference: datetime) -> datetime:
    return _localize(reference.tzinfo, datetime.combine(day, t))


def filter_report_expenses(expenses: Iterable[Any], filters: ReportFilters, reference: datetime) -> List[Any]:
    """
    Apply report filters. start_date is inclusive from midnight, end_date is
    inclusive through 23:59:59, both in the reference timezone.
    """
    start = _day_bound(filters.start_date, time.min, reference) if filters.start_date else None
    end = _day_bound(filters.end_date, time(23, 59, 59), reference) if filters.end_date else None
    selected = set(filters.items)
    out = []
    for e in expenses:
        ts = _timestamp(e, reference)
        if start is not None and ts < start:
            continue
        if end is not None and ts > end:
            continue
        if filters.centre and _field(e, "centre") != filters.centre:
            continue
        if filters.category and _field(e, "category") != filters.category:
            continue
        if selected and _field(e, "item") not in selected:
            continue
        out.append(e)
    return out


def balance_sheet(expenses: Iterable[Any], filters: ReportFilters, reference: datetime) -> BalanceSheet:
    """Group the filtered expenses (newest first) by centre and category."""
    rows = filter_report_expenses(expenses, filters, reference)
    rows.sort(key=lambda e: _timestamp(e, reference), reverse=True)

    centre_breakdown = {}
    category_breakdown = {}
    for e in rows:
        amount = _amount(e)
        centre = _field(e, "centre", "")
        entry = centre_breakdown.setdefault(centre, {"total": Decimal("0"), "items": 0})
        entry["total"] += amount
        entry["items"] += 1
        category = _field(e, "category", "")
        category_breakdown[category] = category_breakdown.get(category, Decimal("0")) + amount

    return BalanceSheet(
        summary=BalanceSheetSummary(
            total_amount=_sum(rows),
            total_items=len(rows),
            start=filters.start_date.isoformat() if filters.start_date else ALL_TIME,
            end=filters.end_date.isoformat() if filters.end_date else ALL_TIME,
        ),
        centre_breakdown={c: CentreBreakdown(**v) for c, v in centre_breakdown.items()},
        category_breakdown=category_breakdown,
        expenses=[ExpenseResponse.model_validate(e) for e in rows],
    )


def _local_datetime(ts: datetime, tzinfo) -> datetime:
    if tzinfo is not None:
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        ts = ts.astimezone(tzinfo)
    # Excel cells cannot hold tz-aware datetimes
    return ts.replace(tzinfo=None)


def _local_date(ts: datetime, tzinfo) -> str:
    return _local_datetime(ts, tzinfo).strftime("%d/%m/%Y")


def expenses_csv(expenses: Iterable[ExpenseResponse], tzinfo=None) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPENSE_CSV_HEADERS)
    for e in expenses:
        writer.writerow([
            _local_date(e.timestamp, tzinfo),
            e.item,
            e.category,
            f"{e.amount:.2f}",
            e.payment_method.upper(),
            e.centre,
            e.created_by,
            e.note or "",
        ])
    return buf.getvalue()


def balance_sheet_xlsx(sheet: BalanceSheet, tzinfo=None) -> bytes:
    """
    Workbook with a "Summary" sheet (totals and breakdowns) and a
    "Detailed Expenses" sheet (one row per expense). Amounts are numeric
    cells formatted as rupees.
    """
    wb = Workbook()
    summary = wb.active
    summary.title = "Summary"
    summary.append([REPORT_TITLE])
    summary["A1"].font = Font(bold=True, size=14, color=XLSX_PURPLE)
    summary.append([])
    summary.append(["Report Period:", f"{sheet.summary.start} to {sheet.summary.end}"])
    summary.append(["Total Expenses:", float(sheet.summary.total_amount)])
    summary.cell(row=summary.max_row, column=2).number_format = RUPEE_FORMAT
    summary.append(["Total Items:", sheet.summary.total_items])
    summary.append([])

    summary.append(["Category Breakdown"])
    summary.append(["Category", "Amount"])
    _bold_row(summary)
    for category, amount in sheet.category_breakdown.items():
        summary.append([category, float(amount)])
        summary.cell(row=summary.max_row, column=2).number_format = RUPEE_FORMAT
    summary.append([])

    summary.append(["Centre Breakdown"])
    summary.append(["Centre", "Total Amount", "Items"])
    _bold_row(summary)
    for centre, data in sheet.centre_breakdown.items():
        summary.append([centre, float(data.total), data.items])
        summary.cell(row=summary.max_row, column=2).number_format = RUPEE_FORMAT
    summary.column_dimensions["A"].width = 24
    summary.column_dimensions["B"].width = 28

    detail = wb.create_sheet("Detailed Expenses")
    detail.append(["Item", "Centre", "Category", "Amount", "Date", "Description"])
    _bold_row(detail)
    for e in sheet.expenses:
        detail.append([e.item, e.centre, e.category, float(e.amount), _local_datetime(e.timestamp, tzinfo), e.note or ""])
        detail.cell(row=detail.max_row, column=4).number_format = RUPEE_FORMAT
        detail.cell(row=detail.max_row, column=5).number_format = "DD/MM/YYYY"
    detail.freeze_panes = "A2"
    for column, width in zip("ABCDEF", (24, 14, 20, 14, 14, 40)):
        detail.column_dimensions[column].width = width

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _bold_row(ws) -> None:
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)


def _table(data: list, font_size: int = 10) -> Table:
    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_PURPLE),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), font_size),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return table


def balance_sheet_pdf(sheet: BalanceSheet, tzinfo=None, title: Optional[str] = None) -> bytes:
    """Render the balance sheet as an A4 PDF and return its bytes."""
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, title=title or REPORT_TITLE)
    styles = getSampleStyleSheet()
    heading = ParagraphStyle("heading", parent=styles["Title"], textColor=BRAND_PURPLE, alignment=0)
    body = ParagraphStyle("body", parent=styles["Normal"], textColor=BRAND_BROWN, fontSize=12, leading=16)

    # Built-in fonts have no rupee glyph
    story = [
        Paragraph(title or REPORT_TITLE, heading),
        Paragraph(f"Report Period: {sheet.summary.start} to {sheet.summary.end}", body),
        Paragraph(f"Total Expenses: Rs. {sheet.summary.total_amount:.2f}", body),
        Paragraph(f"Total Items: {sheet.summary.total_items}", body),
        Spacer(1, 16),
    ]
    if sheet.category_breakdown:
        story.append(Paragraph("Category Breakdown:", body))
        story.append(_table([["Category", "Amount"]] + [
            [category, f"Rs. {amount:.2f}"] for category, amount in sheet.category_breakdown.items()
        ]))
        story.append(Spacer(1, 12))
    if sheet.centre_breakdown:
        story.append(_table([["Centre", "Total Amount", "Items"]] + [
            [centre, f"Rs. {data.total:.2f}", data.items] for centre, data in sheet.centre_breakdown.items()
        ]))
        story.append(Spacer(1, 12))
    if sheet.expenses:
        story.append(_table([["Item", "Centre", "Category", "Amount", "Date"]] + [
            [e.item, e.centre, e.category, f"Rs. {e.amount:.2f}", _local_date(e.timestamp, tzinfo)]
            for e in sheet.expenses
        ], font_size=8))

    doc.build(story)
    return buf.getvalue()
