"""
Metadata models for categories and countries.
"""
from pydantic import BaseModel


class Category(BaseModel):
    """Channel category model."""
    id: str
    name: str


class Country(BaseModel):
    """Country model."""
    name: str
    code: str
    flag: str = ""
