from datetime import date as date_type
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .common import Money
from .expenses import ExpenseResponse
from .inventory import InventoryResponse


class RollupFilters(BaseModel):
    centre: Optional[str] = None
    category: Optional[str] = None
    user: Optional[str] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)


class StockThresholds(BaseModel):
    low_stock_absolute: int = 3
    critical: int = 2
    low_stock_relative: float = 0.20


class ItemCount(BaseModel):
    item: str
    count: int


class SpenderTotal(BaseModel):
    user: str
    amount: Money


class CategoryTotal(BaseModel):
    category: str
    total: Money


class MonthOverMonth(BaseModel):
    current_month_total: Money = Decimal("0")
    previous_month_total: Money = Decimal("0")
    current_month_count: int = 0
    previous_month_count: int = 0
    percentage_change: float = 0.0


class Recommendation(BaseModel):
    severity: Literal["success", "info", "warning", "error"]
    text: str


class Rollup(BaseModel):
    total_amount: Money
    expense_count: int
    counts_by_category: Dict[str, int]
    counts_by_centre: Dict[str, int]
    totals_by_category: Dict[str, Money]
    totals_by_centre: Dict[str, Money]
    category_breakdown: List[CategoryTotal]
    top_items_by_frequency: List[ItemCount]
    top_spenders_by_amount: List[SpenderTotal]
    recent_expenses: List[ExpenseResponse]
    month_over_month: MonthOverMonth
    centre_comparison: Dict[str, MonthOverMonth]
    total_inventory: int
    low_stock_items: List[InventoryResponse]
    critical_items: List[InventoryResponse]
    out_of_stock_items: List[InventoryResponse]
    relative_low_stock_items: List[InventoryResponse]
    performance_score: int = Field(ge=0, le=100)
    recommendations: List[Recommendation]
    centres: List[str]
    users: List[str]
    categories: List[str]


class ReportFilters(BaseModel):
    start_date: Optional[date_type] = None
    end_date: Optional[date_type] = None
    centre: Optional[str] = None
    category: Optional[str] = None
    items: List[str] = Field(default_factory=list)


class CentreBreakdown(BaseModel):
    total: Money
    items: int


class BalanceSheetSummary(BaseModel):
    total_amount: Money
    total_items: int
    start: str
    end: str


class BalanceSheet(BaseModel):
    summary: BalanceSheetSummary
    centre_breakdown: Dict[str, CentreBreakdown]
    category_breakdown: Dict[str, Money]
    expenses: List[ExpenseResponse]
