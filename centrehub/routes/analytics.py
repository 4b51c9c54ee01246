from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
import structlog

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_user, require_admin, resolve_centre
from ..models.models import Expense, InventoryItem, User
from ..schemas.analytics import BalanceSheet, ReportFilters, Rollup, RollupFilters
from ..services.reports import balance_sheet, balance_sheet_pdf, balance_sheet_xlsx
from ..services.rollup import rollup
from ..services.time_rules import get_now, local_tz
from .inventory import stock_thresholds


router = APIRouter(prefix="/analytics", tags=["analytics"])
logger = structlog.get_logger(__name__)

INSIGHTS_RECENT_LIMIT = 10
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _snapshot(db: Session, centre: Optional[str]):
    expenses = db.query(Expense)
    inventory = db.query(InventoryItem)
    if centre:
        expenses = expenses.filter(Expense.centre == centre)
        inventory = inventory.filter(InventoryItem.centre == centre)
    return expenses.all(), inventory.all()


@router.get("/dashboard", response_model=Rollup)
def dashboard(
    centre: Optional[str] = None,
    category: Optional[str] = None,
    user: Optional[str] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    now: datetime = Depends(get_now),
):
    """
    Admin dashboard over every centre.

    Filters combine with AND. `month` selects a calendar month of the current
    year in the configured timezone; month-over-month figures ignore it.
    """
    expenses, inventory = _snapshot(db, None)
    filters = RollupFilters(centre=centre, category=category, user=user, month=month)
    result = rollup(
        expenses,
        inventory,
        reference_time=now,
        filters=filters,
        thresholds=stock_thresholds(),
        recent_limit=settings.recent_expenses_limit,
    )
    logger.info("dashboard_built", filters=filters.model_dump(exclude_none=True), expenses=result.expense_count, by=admin.email)
    return result


@router.get("/insights", response_model=Rollup)
def insights(
    centre: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """
    Rollup for one centre: the caller's own, or any centre an admin names.
    centre_comparison still covers every centre.
    """
    scope = resolve_centre(user, centre)
    expenses, _ = _snapshot(db, None)
    _, inventory = _snapshot(db, scope)
    return rollup(
        expenses,
        inventory,
        reference_time=now,
        filters=RollupFilters(centre=scope),
        thresholds=stock_thresholds(),
        recent_limit=INSIGHTS_RECENT_LIMIT,
        compare_all_centres=True,
    )


def _report(
    db: Session,
    user: User,
    now: datetime,
    start_date: Optional[date],
    end_date: Optional[date],
    centre: Optional[str],
    category: Optional[str],
    items: List[str],
) -> BalanceSheet:
    scope = resolve_centre(user, centre)
    filters = ReportFilters(start_date=start_date, end_date=end_date, centre=scope, category=category, items=items)
    expenses, _ = _snapshot(db, scope)
    return balance_sheet(expenses, filters, now)


@router.get("/balance-sheet", response_model=BalanceSheet)
def balance_sheet_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    centre: Optional[str] = None,
    category: Optional[str] = None,
    items: List[str] = Query(default=[]),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    return _report(db, user, now, start_date, end_date, centre, category, items)


def _filename(start_date: Optional[date], end_date: Optional[date], now: datetime, ext: str) -> str:
    start = start_date.isoformat() if start_date else "all"
    end = end_date.isoformat() if end_date else now.date().isoformat()
    return f"balance_sheet_{start}_to_{end}.{ext}"


@router.get("/balance-sheet.pdf")
def balance_sheet_report_pdf(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    centre: Optional[str] = None,
    category: Optional[str] = None,
    items: List[str] = Query(default=[]),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    sheet = _report(db, user, now, start_date, end_date, centre, category, items)
    content = balance_sheet_pdf(sheet, tzinfo=local_tz())
    logger.info("balance_sheet_exported", format="pdf", rows=sheet.summary.total_items, by=user.email)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{_filename(start_date, end_date, now, "pdf")}"'},
    )


@router.get("/balance-sheet.xlsx")
def balance_sheet_report_xlsx(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    centre: Optional[str] = None,
    category: Optional[str] = None,
    items: List[str] = Query(default=[]),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    sheet = _report(db, user, now, start_date, end_date, centre, category, items)
    logger.info("balance_sheet_exported", format="xlsx", rows=sheet.summary.total_items, by=user.email)
    return Response(
        content=balance_sheet_xlsx(sheet, tzinfo=local_tz()),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{_filename(start_date, end_date, now, "xlsx")}"'},
    )
