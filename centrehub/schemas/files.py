from pydantic import BaseModel
from typing import Optional
import enum


class UploadFolder(str, enum.Enum):
    expenses = "expenses"
    inventory = "inventory"


class UploadResponse(BaseModel):
    """Attachment reference as stored on expense and inventory records."""
    name: str
    url: str
    size: int
    type: Optional[str] = None
    key: str
