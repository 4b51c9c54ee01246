"""
Tests for the analytics routes: dashboard, insights and balance sheets.
"""
import io
from datetime import datetime

import pytest
from openpyxl import load_workbook


@pytest.fixture
def seeded(add_expense, add_item):
    add_expense(1200, centre="Lucknow", item="Milk", when=datetime(2025, 3, 5, 10, 0))
    add_expense(1000, centre="Lucknow", item="Milk", when=datetime(2025, 2, 5, 10, 0))
    add_expense(300, centre="Gorakhpur", category="Admin", item="Rent",
                created_by="gorakhpur@aaryavart.org", when=datetime(2025, 3, 2, 10, 0))
    add_item("Tea", 0)
    add_item("Sugar", 2)
    add_item("Chairs", 10, centre="Gorakhpur")


class TestDashboard:

    def test_admin_only(self, client, seeded, lucknow_headers):
        assert client.get("/analytics/dashboard", headers=lucknow_headers).status_code == 403

    def test_overall(self, client, seeded, admin_headers):
        body = client.get("/analytics/dashboard", headers=admin_headers).json()
        assert body["total_amount"] == 2500
        assert body["expense_count"] == 3
        assert body["month_over_month"]["current_month_total"] == 1500
        assert body["month_over_month"]["previous_month_total"] == 1000
        assert body["month_over_month"]["percentage_change"] == 50.0
        assert body["total_inventory"] == 3
        assert body["top_items_by_frequency"][0] == {"item": "Milk", "count": 2}
        assert sorted(body["centres"]) == ["Gorakhpur", "Lucknow"]
        assert len(body["recent_expenses"]) == 3
        # 100 - 5 (spend) - 2*2 (low) - 5 (out)
        assert body["performance_score"] == 86

    def test_filters(self, client, seeded, admin_headers):
        body = client.get("/analytics/dashboard?centre=Lucknow&month=2", headers=admin_headers).json()
        assert body["total_amount"] == 1000
        assert body["month_over_month"]["current_month_total"] == 1200
        assert body["total_inventory"] == 2

        body = client.get("/analytics/dashboard?user=gorakhpur@aaryavart.org", headers=admin_headers).json()
        assert body["total_amount"] == 300

    def test_bad_month(self, client, admin_headers):
        assert client.get("/analytics/dashboard?month=13", headers=admin_headers).status_code == 422


class TestInsights:

    def test_staff_see_own_centre(self, client, seeded, gorakhpur_headers):
        body = client.get("/analytics/insights", headers=gorakhpur_headers).json()
        assert body["total_amount"] == 300
        assert body["total_inventory"] == 1
        assert body["out_of_stock_items"] == []
        assert client.get("/analytics/insights?centre=Lucknow", headers=gorakhpur_headers).status_code == 403

    def test_centre_comparison_covers_every_centre(self, client, seeded, gorakhpur_headers):
        body = client.get("/analytics/insights", headers=gorakhpur_headers).json()
        assert body["total_amount"] == 300
        assert set(body["centre_comparison"]) == {"Lucknow", "Gorakhpur"}
        assert body["centre_comparison"]["Lucknow"]["current_month_total"] == 1200
        assert body["centre_comparison"]["Gorakhpur"]["current_month_total"] == 300

    def test_admin_picks_centre(self, client, seeded, admin_headers):
        body = client.get("/analytics/insights?centre=Lucknow", headers=admin_headers).json()
        assert body["total_amount"] == 2200
        assert [i["item_name"] for i in body["out_of_stock_items"]] == ["Tea"]


class TestBalanceSheet:

    def test_range_and_breakdown(self, client, seeded, admin_headers):
        body = client.get(
            "/analytics/balance-sheet?start_date=2025-03-01&end_date=2025-03-31",
            headers=admin_headers,
        ).json()
        assert body["summary"]["total_amount"] == 1500
        assert body["summary"]["total_items"] == 2
        assert body["centre_breakdown"]["Gorakhpur"] == {"total": 300, "items": 1}

    def test_selected_items(self, client, seeded, admin_headers):
        body = client.get("/analytics/balance-sheet?items=Rent&items=Milk", headers=admin_headers).json()
        assert body["summary"]["total_items"] == 3
        assert body["summary"]["start"] == "All Time"

    def test_staff_scoped(self, client, seeded, lucknow_headers):
        body = client.get("/analytics/balance-sheet", headers=lucknow_headers).json()
        assert body["summary"]["total_amount"] == 2200

    def test_pdf_export(self, client, seeded, admin_headers):
        r = client.get("/analytics/balance-sheet.pdf?start_date=2025-03-01", headers=admin_headers)
        assert r.status_code == 200
        assert r.headers["content-type"] == "application/pdf"
        assert r.content.startswith(b"%PDF")
        assert "balance_sheet_2025-03-01_to_2025-03-15.pdf" in r.headers["content-disposition"]

    def test_xlsx_export(self, client, seeded, lucknow_headers):
        r = client.get("/analytics/balance-sheet.xlsx", headers=lucknow_headers)
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        wb = load_workbook(io.BytesIO(r.content))
        assert wb.sheetnames == ["Summary", "Detailed Expenses"]
        centres = {row[1] for row in wb["Detailed Expenses"].iter_rows(min_row=2, values_only=True)}
        assert centres == {"Lucknow"}
