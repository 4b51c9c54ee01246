"""
Tests for balance sheet reports, CSV/PDF/Excel exports and expense alerts.
"""
import csv
import io
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytz
from openpyxl import load_workbook

from centrehub.schemas.analytics import ReportFilters
from centrehub.schemas.expenses import ExpenseResponse
from centrehub.services.alerts import expense_alert_text, expense_alert_url
from centrehub.services.reports import (
    EXPENSE_CSV_HEADERS,
    balance_sheet,
    balance_sheet_pdf,
    balance_sheet_xlsx,
    expenses_csv,
)


IST = pytz.timezone("Asia/Kolkata")
NOW = IST.localize(datetime(2025, 3, 15, 12, 0))


def expense(amount, when, centre="Lucknow", category="Kitchen", item="Milk", note=None):
    return ExpenseResponse(
        id=uuid.uuid4(),
        amount=Decimal(str(amount)),
        category=category,
        item=item,
        centre=centre,
        payment_method="upi",
        timestamp=IST.localize(when).astimezone(timezone.utc),
        date=when.date(),
        created_by="staff@aaryavart.org",
        note=note,
    )


EXPENSES = [
    expense(100, datetime(2025, 3, 1, 0, 15)),
    expense(200, datetime(2025, 3, 10, 23, 59, 30), centre="Gorakhpur", category="Admin", item="Rent"),
    expense(50, datetime(2025, 3, 11, 0, 0, 1), item="Tea"),
    expense(75, datetime(2025, 2, 27, 18, 0), category="Cleaning", item="Soap"),
]


class TestBalanceSheet:

    def test_all_time(self):
        sheet = balance_sheet(EXPENSES, ReportFilters(), NOW)
        assert sheet.summary.total_amount == Decimal("425")
        assert sheet.summary.total_items == 4
        assert sheet.summary.start == "All Time"
        assert sheet.summary.end == "All Time"
        assert [e.item for e in sheet.expenses] == ["Tea", "Rent", "Milk", "Soap"]

    def test_date_range_is_inclusive_in_local_time(self):
        filters = ReportFilters(start_date=date(2025, 3, 1), end_date=date(2025, 3, 10))
        sheet = balance_sheet(EXPENSES, filters, NOW)
        assert sorted(e.item for e in sheet.expenses) == ["Milk", "Rent"]
        assert sheet.summary.start == "2025-03-01"
        assert sheet.summary.end == "2025-03-10"

    def test_breakdowns(self):
        sheet = balance_sheet(EXPENSES, ReportFilters(), NOW)
        assert sheet.centre_breakdown["Lucknow"].total == Decimal("225")
        assert sheet.centre_breakdown["Lucknow"].items == 3
        assert sheet.centre_breakdown["Gorakhpur"].items == 1
        assert sheet.category_breakdown["Kitchen"] == Decimal("150")

    def test_centre_category_and_items_filters(self):
        assert balance_sheet(EXPENSES, ReportFilters(centre="Gorakhpur"), NOW).summary.total_items == 1
        assert balance_sheet(EXPENSES, ReportFilters(category="Kitchen"), NOW).summary.total_amount == Decimal("150")
        sheet = balance_sheet(EXPENSES, ReportFilters(items=["Tea", "Soap"]), NOW)
        assert sorted(e.item for e in sheet.expenses) == ["Soap", "Tea"]

    def test_empty(self):
        sheet = balance_sheet([], ReportFilters(), NOW)
        assert sheet.summary.total_amount == 0
        assert sheet.centre_breakdown == {}


class TestExports:

    def test_expenses_csv_uses_local_dates(self):
        rows = list(csv.reader(io.StringIO(expenses_csv(EXPENSES[:1], tzinfo=IST))))
        assert rows[0] == EXPENSE_CSV_HEADERS
        # 00:15 IST on 1 March is still 28 February in UTC
        assert rows[1][:6] == ["01/03/2025", "Milk", "Kitchen", "100.00", "UPI", "Lucknow"]

    def test_balance_sheet_xlsx_sheets(self):
        content = balance_sheet_xlsx(balance_sheet(EXPENSES, ReportFilters(), NOW), tzinfo=IST)
        wb = load_workbook(io.BytesIO(content))
        assert wb.sheetnames == ["Summary", "Detailed Expenses"]

        summary = [row for row in wb["Summary"].iter_rows(values_only=True)]
        assert ("Total Expenses:", 425) in [row[:2] for row in summary]
        assert ("Total Items:", 4) in [row[:2] for row in summary]
        centres = summary.index(("Centre", "Total Amount", "Items"))
        assert summary[centres + 1 : centres + 3] == [("Lucknow", 225, 3), ("Gorakhpur", 200, 1)]

        detail = list(wb["Detailed Expenses"].iter_rows(values_only=True))
        assert detail[0] == ("Item", "Centre", "Category", "Amount", "Date", "Description")
        assert len(detail) == 5
        # Dates are local wall-clock times
        assert detail[3][:5] == ("Milk", "Lucknow", "Kitchen", 100, datetime(2025, 3, 1, 0, 15))

    def test_balance_sheet_pdf(self):
        pdf = balance_sheet_pdf(balance_sheet(EXPENSES, ReportFilters(), NOW), tzinfo=IST)
        assert pdf.startswith(b"%PDF")

    def test_empty_pdf(self):
        assert balance_sheet_pdf(balance_sheet([], ReportFilters(), NOW)).startswith(b"%PDF")


class TestAlerts:

    def test_alert_text(self):
        text = expense_alert_text(expense(120, datetime(2025, 3, 5, 10, 0), note="monthly"))
        assert "Lucknow Centre" in text
        assert "₹120.00" in text
        assert "Payment: UPI" in text
        assert "📝 Note: monthly" in text
        assert text.endswith("#AaryavartExpense #Lucknow")

    def test_no_group_means_no_link(self):
        assert expense_alert_url(EXPENSES[0], group_url="") is None

    def test_link_carries_encoded_text(self):
        url = expense_alert_url(EXPENSES[0], group_url="https://chat.whatsapp.com/abc")
        assert url.startswith("https://chat.whatsapp.com/abc?text=")
        assert " " not in url
