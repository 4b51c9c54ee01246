import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..auth.security import get_current_user, require_admin
from ..models.models import ExpenseCategory, CategoryItem, User
from ..schemas.categories import (
    CategoryCreate,
    CategoryItemCreate,
    CategoryItemResponse,
    CategoryResponse,
)


router = APIRouter(prefix="/categories", tags=["categories"])
logger = structlog.get_logger(__name__)


# Catalogue seeded on first start; users extend it at runtime
DEFAULT_CATEGORIES = {
    "Therapy Materials": ["Flashcards", "Sensory Toys", "Puzzles", "Art Supplies", "Books", "Therapy Tools"],
    "Admin": ["Rent", "Electricity", "Internet", "Stationary", "Printing", "Phone Bill", "Maintenance"],
    "Kitchen": ["Milk", "Tea", "Biscuits", "Gas", "Water", "Groceries", "Vegetables", "Fruits", "Rice", "Dal"],
    "Cleaning": ["Detergent", "Mops", "Sanitizer", "Brooms", "Soap", "Floor Cleaner", "Toilet Cleaner"],
    "Staff Welfare": ["Snacks", "Gifts", "First Aid", "Refreshments", "Lunch", "Transport Allowance"],
    "Furniture/Equipment": ["Chair", "Table", "AC", "Fan", "Computer", "Printer", "Projector", "Whiteboard"],
    "Transport/Misc": ["Auto Fare", "Cake", "Balloons", "Decoration", "Birthday Party", "Event Supplies"],
    "Inventory Purchase": [],
}


def seed_default_categories(db: Session) -> int:
    """Insert missing default categories and items. Returns how many rows were added."""
    added = 0
    for index, (name, items) in enumerate(DEFAULT_CATEGORIES.items()):
        category = db.query(ExpenseCategory).filter(ExpenseCategory.name == name).first()
        if not category:
            category = ExpenseCategory(name=name, sort_index=index)
            db.add(category)
            db.flush()
            added += 1
        existing = {i.name for i in category.items}
        for position, item in enumerate(items):
            if item not in existing:
                db.add(CategoryItem(category_id=category.id, name=item, sort_index=position))
                added += 1
    db.commit()
    return added


@router.get("", response_model=List[CategoryResponse])
def list_categories(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(ExpenseCategory).order_by(ExpenseCategory.sort_index.asc(), ExpenseCategory.name.asc()).all()


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(body: CategoryCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if db.query(ExpenseCategory).filter(ExpenseCategory.name == body.name).first():
        raise HTTPException(status_code=400, detail="Category already exists")
    last = db.query(ExpenseCategory).order_by(ExpenseCategory.sort_index.desc()).first()
    category = ExpenseCategory(name=body.name, sort_index=(last.sort_index + 1) if last else 0)
    db.add(category)
    db.flush()
    seen = set()
    for position, raw in enumerate(body.items):
        name = raw.strip()
        if name and name not in seen:
            seen.add(name)
            db.add(CategoryItem(category_id=category.id, name=name, sort_index=position, created_by=admin.email))
    db.commit()
    db.refresh(category)
    logger.info("category_created", category=category.name, items=len(seen), by=admin.email)
    return category


@router.post("/{category_id}/items", response_model=CategoryItemResponse, status_code=201)
def add_custom_item(
    category_id: uuid.UUID,
    body: CategoryItemCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    category = db.query(ExpenseCategory).filter(ExpenseCategory.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    if any(i.name == body.name for i in category.items):
        raise HTTPException(status_code=400, detail="Item already exists in this category")
    item = CategoryItem(
        category_id=category.id,
        name=body.name,
        is_custom=True,
        sort_index=len(category.items),
        created_by=user.email,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("category_item_added", category=category.name, item=item.name, by=user.email)
    return item
