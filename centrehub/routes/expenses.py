import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy import or_
from sqlalchemy.orm import Session
import structlog

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_user, resolve_centre, ensure_centre_access
from ..models.models import Expense, User
from ..schemas.expenses import (
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResponse,
    ExpenseCreatedResponse,
    ExpenseListResponse,
)
from ..services.alerts import expense_alert_url
from ..services.reports import expenses_csv
from ..services.time_rules import get_now, local_tz, period_start


router = APIRouter(prefix="/expenses", tags=["expenses"])
logger = structlog.get_logger(__name__)

PERIOD_PATTERN = "^(week|month|quarter|year|all)$"


def _utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc)


def _filtered_query(
    db: Session,
    user: User,
    now: datetime,
    search: Optional[str],
    category: Optional[str],
    period: str,
    centre: Optional[str],
):
    scope = resolve_centre(user, centre)
    query = db.query(Expense)
    if scope:
        query = query.filter(Expense.centre == scope)
    if category:
        query = query.filter(Expense.category == category)
    start = period_start(now, period)
    if start is not None:
        query = query.filter(Expense.timestamp >= _utc(start))
    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(or_(Expense.item.ilike(like), Expense.category.ilike(like), Expense.note.ilike(like)))
    return query.order_by(Expense.timestamp.desc())


def _get_expense(db: Session, expense_id: uuid.UUID, user: User) -> Expense:
    row = db.query(Expense).filter(Expense.id == expense_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Expense not found")
    ensure_centre_access(user, row.centre)
    return row


@router.get("", response_model=ExpenseListResponse)
def list_expenses(
    search: Optional[str] = None,
    category: Optional[str] = None,
    period: str = Query("month", pattern=PERIOD_PATTERN),
    centre: Optional[str] = None,
    limit: int = Query(1000, ge=1, le=10000),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    rows = _filtered_query(db, user, now, search, category, period, centre).limit(limit).all()
    items = [ExpenseResponse.model_validate(r) for r in rows]
    category_totals: Dict[str, Decimal] = {}
    for e in items:
        category_totals[e.category] = category_totals.get(e.category, Decimal("0")) + e.amount
    return ExpenseListResponse(
        items=items,
        count=len(items),
        total_amount=sum((e.amount for e in items), Decimal("0")),
        category_totals=category_totals,
    )


@router.get("/last", response_model=Optional[ExpenseResponse])
def last_expense(
    centre: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Most recent entry, used by the client to duplicate it."""
    scope = resolve_centre(user, centre)
    query = db.query(Expense)
    if scope:
        query = query.filter(Expense.centre == scope)
    return query.order_by(Expense.timestamp.desc()).first()


@router.get("/export.csv")
def export_expenses_csv(
    search: Optional[str] = None,
    category: Optional[str] = None,
    period: str = Query("month", pattern=PERIOD_PATTERN),
    centre: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    rows = _filtered_query(db, user, now, search, category, period, centre).all()
    content = expenses_csv([ExpenseResponse.model_validate(r) for r in rows], tzinfo=local_tz())
    filename = f"expenses_{now.date().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("", response_model=ExpenseCreatedResponse, status_code=201)
def create_expense(
    body: ExpenseCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    if user.is_admin:
        centre = body.centre or settings.default_admin_centre
    else:
        centre = resolve_centre(user, body.centre)
    row = Expense(
        amount=body.amount,
        category=body.category,
        item=body.item,
        centre=centre,
        payment_method=body.payment_method.value,
        timestamp=_utc(now),
        date=body.date or now.date(),
        created_by=user.email,
        note=body.note,
        attachments=[a.model_dump() for a in body.attachments],
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    expense = ExpenseResponse.model_validate(row)
    logger.info(
        "expense_created",
        expense_id=str(row.id),
        centre=centre,
        category=row.category,
        amount=str(row.amount),
        created_by=user.email,
    )
    return ExpenseCreatedResponse(expense=expense, alert_url=expense_alert_url(expense))


@router.get("/{expense_id}", response_model=ExpenseResponse)
def get_expense(expense_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _get_expense(db, expense_id, user)


@router.put("/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: uuid.UUID,
    body: ExpenseUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    row = _get_expense(db, expense_id, user)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("centre") and changes["centre"] != row.centre and not user.is_admin:
        raise HTTPException(status_code=403, detail="Only admins can move expenses between centres")
    if not changes.get("centre"):
        changes.pop("centre", None)
    if "payment_method" in changes and changes["payment_method"] is not None:
        changes["payment_method"] = body.payment_method.value
    if "attachments" in changes:
        changes["attachments"] = [a.model_dump() for a in (body.attachments or [])]
    for k, v in changes.items():
        if v is None and k in ("category", "item", "amount", "payment_method"):
            continue
        setattr(row, k, v)
    row.timestamp = _utc(now)
    db.commit()
    db.refresh(row)
    logger.info("expense_updated", expense_id=str(row.id), fields=sorted(changes.keys()), by=user.email)
    return row


@router.delete("/{expense_id}")
def delete_expense(expense_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    row = _get_expense(db, expense_id, user)
    db.delete(row)
    db.commit()
    logger.info("expense_deleted", expense_id=str(expense_id), centre=row.centre, by=user.email)
    return {"message": "Expense deleted successfully"}
