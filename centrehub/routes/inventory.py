import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_user, require_admin, resolve_centre, ensure_centre_access
from ..models.models import InventoryItem, User
from ..schemas.analytics import StockThresholds
from ..schemas.inventory import (
    AssetStatus,
    AssignRequest,
    InventoryAlerts,
    InventoryCreate,
    InventoryResponse,
    InventoryUpdate,
    ItemType,
    QuantityChange,
    QuantitySet,
)
from ..services.rollup import partition_stock
from ..services.time_rules import get_now


router = APIRouter(prefix="/inventory", tags=["inventory"])
logger = structlog.get_logger(__name__)


def stock_thresholds() -> StockThresholds:
    return StockThresholds(
        low_stock_absolute=settings.low_stock_absolute_threshold,
        critical=settings.critical_stock_threshold,
        low_stock_relative=settings.low_stock_relative_threshold,
    )


def _get_item(db: Session, item_id: uuid.UUID, user: User) -> InventoryItem:
    row = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Item not found")
    ensure_centre_access(user, row.centre)
    return row


def _touch(row: InventoryItem, now: datetime) -> None:
    row.last_updated = now.astimezone(timezone.utc)


def _commit(db: Session, row: InventoryItem) -> InventoryItem:
    db.commit()
    db.refresh(row)
    return row


@router.get("", response_model=List[InventoryResponse])
def list_items(
    search: Optional[str] = None,
    centre: Optional[str] = None,
    item_type: Optional[ItemType] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    scope = resolve_centre(user, centre)
    query = db.query(InventoryItem)
    if scope:
        query = query.filter(InventoryItem.centre == scope)
    if item_type:
        query = query.filter(InventoryItem.item_type == item_type.value)
    if search and search.strip():
        query = query.filter(InventoryItem.item_name.ilike(f"%{search.strip()}%"))
    return query.order_by(InventoryItem.item_name.asc()).all()


@router.get("/alerts", response_model=InventoryAlerts)
def stock_alerts(
    centre: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    scope = resolve_centre(user, centre)
    query = db.query(InventoryItem)
    if scope:
        query = query.filter(InventoryItem.centre == scope)
    tiers = partition_stock(query.all(), stock_thresholds())
    return InventoryAlerts(**{
        tier: [InventoryResponse.model_validate(r) for r in rows] for tier, rows in tiers.items()
    })


@router.post("", response_model=InventoryResponse, status_code=201)
def create_item(
    body: InventoryCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    if user.is_admin:
        centre = body.centre or settings.default_admin_centre
    else:
        centre = resolve_centre(user, body.centre)
    row = InventoryItem(
        item_name=body.item_name,
        category=body.category,
        centre=centre,
        quantity=body.quantity,
        original_quantity=body.original_quantity,
        item_type=body.item_type.value,
        status=body.status.value,
        assigned_to=body.assigned_to if body.item_type == ItemType.asset else None,
        attachments=[a.model_dump() for a in body.attachments],
    )
    _touch(row, now)
    db.add(row)
    _commit(db, row)
    logger.info("inventory_created", item_id=str(row.id), centre=centre, quantity=row.quantity, by=user.email)
    return row


@router.put("/{item_id}", response_model=InventoryResponse)
def update_item(
    item_id: uuid.UUID,
    body: InventoryUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    row = _get_item(db, item_id, user)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("centre") and changes["centre"] != row.centre and not user.is_admin:
        raise HTTPException(status_code=403, detail="Only admins can move items between centres")
    for key in ("item_type", "status"):
        if changes.get(key) is not None:
            changes[key] = getattr(body, key).value
    if "attachments" in changes:
        changes["attachments"] = [a.model_dump() for a in (body.attachments or [])]
    for k, v in changes.items():
        if v is None and k in ("item_name", "quantity", "item_type", "status", "centre"):
            continue
        setattr(row, k, v)
    if row.item_type != ItemType.asset.value:
        row.assigned_to = None
    _touch(row, now)
    _commit(db, row)
    logger.info("inventory_updated", item_id=str(row.id), fields=sorted(changes.keys()), by=user.email)
    return row


@router.delete("/{item_id}")
def delete_item(item_id: uuid.UUID, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    row = _get_item(db, item_id, admin)
    db.delete(row)
    db.commit()
    logger.info("inventory_deleted", item_id=str(item_id), by=admin.email)
    return {"message": "Item deleted successfully"}


@router.post("/{item_id}/use", response_model=InventoryResponse)
def use_item(
    item_id: uuid.UUID,
    body: QuantityChange,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    row = _get_item(db, item_id, user)
    if body.amount > row.quantity:
        raise HTTPException(status_code=400, detail=f"Only {row.quantity} left in stock")
    row.quantity -= body.amount
    row.last_used = now.astimezone(timezone.utc)
    _touch(row, now)
    _commit(db, row)
    logger.info("inventory_used", item_id=str(row.id), amount=body.amount, remaining=row.quantity, by=user.email)
    return row


@router.post("/{item_id}/damage", response_model=InventoryResponse)
def damage_item(
    item_id: uuid.UUID,
    body: QuantityChange,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    row = _get_item(db, item_id, user)
    if body.amount > row.quantity:
        raise HTTPException(status_code=400, detail=f"Only {row.quantity} units available to mark damaged")
    row.quantity -= body.amount
    row.damaged = (row.damaged or 0) + body.amount
    if row.item_type == ItemType.asset.value:
        row.status = AssetStatus.needs_repair.value
    _touch(row, now)
    _commit(db, row)
    logger.info("inventory_damaged", item_id=str(row.id), amount=body.amount, damaged=row.damaged, by=user.email)
    return row


@router.post("/{item_id}/repair", response_model=InventoryResponse)
def repair_item(
    item_id: uuid.UUID,
    body: QuantityChange,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    row = _get_item(db, item_id, user)
    damaged = row.damaged or 0
    restored = min(body.amount, damaged)
    row.damaged = max(0, damaged - body.amount)
    row.repaired = (row.repaired or 0) + body.amount
    row.quantity += restored
    if row.item_type == ItemType.asset.value and row.damaged == 0 and row.status == AssetStatus.needs_repair.value:
        row.status = AssetStatus.available.value
    _touch(row, now)
    _commit(db, row)
    logger.info("inventory_repaired", item_id=str(row.id), amount=body.amount, restored=restored, by=user.email)
    return row


@router.post("/{item_id}/quantity", response_model=InventoryResponse)
def set_quantity(
    item_id: uuid.UUID,
    body: QuantitySet,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    row = _get_item(db, item_id, user)
    previous = row.quantity
    row.quantity = body.quantity
    _touch(row, now)
    _commit(db, row)
    logger.info("inventory_quantity_set", item_id=str(row.id), previous=previous, quantity=row.quantity, by=user.email)
    return row


@router.post("/{item_id}/assign", response_model=InventoryResponse)
def assign_item(
    item_id: uuid.UUID,
    body: AssignRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    row = _get_item(db, item_id, user)
    if row.item_type != ItemType.asset.value:
        raise HTTPException(status_code=400, detail="Only assets can be assigned")
    row.assigned_to = body.assigned_to.strip()
    row.status = AssetStatus.assigned.value
    _touch(row, now)
    _commit(db, row)
    logger.info("inventory_assigned", item_id=str(row.id), assigned_to=row.assigned_to, by=user.email)
    return row
