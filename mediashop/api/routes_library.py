from fastapi import APIRouter, Depends
from typing import List, Optional
from sqlalchemy.orm import Session

from mediashop.api.deps import get_db
from mediashop.api.schemas import AccessRead, LibraryItem
from mediashop.core.auth import Identity, get_current_identity
from mediashop.services import entitlements

router = APIRouter()

@router.get("/library", response_model=List[LibraryItem])
def my_library(kind: Optional[str] = None, search: Optional[str] = None, category: Optional[str] = None,
               identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    rows = entitlements.list_library(db, identity.email, kind=kind, search=search, category=category)
    return [
        LibraryItem(product_id=p.id, title=p.title, kind=p.kind, category=p.category, purchased_at=granted_at)
        for p, granted_at in rows
    ]

@router.get("/products/{product_id}/access", response_model=AccessRead)
def product_access(product_id: int, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return AccessRead(product_id=product_id, can_access=entitlements.can_access(db, identity.email, product_id))
