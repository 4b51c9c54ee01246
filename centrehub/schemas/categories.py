import uuid
from typing import List

from pydantic import BaseModel, Field, field_validator


class CategoryItemResponse(BaseModel):
    id: uuid.UUID
    name: str
    is_custom: bool = False

    class Config:
        from_attributes = True


class CategoryResponse(BaseModel):
    id: uuid.UUID
    name: str
    items: List[CategoryItemResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    items: List[str] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return str(v).strip() if v is not None else v


class CategoryItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return str(v).strip() if v is not None else v
