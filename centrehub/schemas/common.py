from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, PlainSerializer


# Amounts stay Decimal in Python; JSON clients get plain numbers
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")]


class Attachment(BaseModel):
    name: str
    url: str
    size: int = 0
    type: Optional[str] = None
