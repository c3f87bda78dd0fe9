"""
Shapes shared by several endpoint groups.
"""
from pydantic import BaseModel


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class MessageResponse(BaseModel):
    message: str
