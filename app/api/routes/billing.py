"""
Public product catalog.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.plan import ProductsResponse
from app.services.plan_service import list_products

router = APIRouter(prefix="/api/billing", tags=["Billing"])


@router.get("/products", response_model=ProductsResponse)
def get_products(db: Session = Depends(get_db)):
    """Active plans and top-up packs, in display order."""
    return list_products(db)
