from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mediashop.api.deps import get_db
from mediashop.api.routes_orders import order_out
from mediashop.api.schemas import OrderRead, OrderStatusUpdate, RevokeResult
from mediashop.core.auth import Identity, require_admin
from mediashop.services import entitlements, orders_admin

router = APIRouter()

@router.patch("/orders/{order_id}/status", response_model=OrderRead)
def update_order_status(order_id: int, payload: OrderStatusUpdate, admin: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return order_out(orders_admin.set_status(db, order_id, payload.status, actor=admin.email))

@router.delete("/entitlements", response_model=RevokeResult)
def revoke_entitlement(user_email: str, product_id: int, admin: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return RevokeResult(revoked=entitlements.revoke(db, user_email, product_id))
