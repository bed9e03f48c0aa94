from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from mediashop.core.logging import get_logger
from mediashop.db.models import Entitlement, Product, now_utc

log = get_logger("entitlements")


def _insert_ignore(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(Entitlement)
    if dialect == "sqlite":
        return sqlite.insert(Entitlement)
    raise NotImplementedError(f"entitlement upsert not supported on {dialect}")


def grant(db: Session, user_email: str, product_ids: Iterable[int], order_id: Optional[int] = None) -> int:
    """Returns how many rows were new. Does not commit."""
    ids = sorted(set(int(p) for p in product_ids))
    if not ids:
        return 0
    granted_at = now_utc()
    stmt = _insert_ignore(db).values([
        {"user_email": user_email, "product_id": pid, "order_id": order_id, "granted_at": granted_at}
        for pid in ids
    ])
    # unique (user_email, product_id)
    stmt = stmt.on_conflict_do_nothing(index_elements=["user_email", "product_id"])
    created = db.execute(stmt).rowcount or 0
    log.info("entitlements_granted", user=user_email, products=ids, created=created)
    return created


def can_access(db: Session, user_email: str, product_id: int) -> bool:
    stmt = select(Entitlement.id).where(
        Entitlement.user_email == user_email, Entitlement.product_id == product_id
    ).limit(1)
    return db.execute(stmt).first() is not None


def list_library(
    db: Session,
    user_email: str,
    kind: Optional[str] = None,
    search: Optional[str] = None,
    category: Optional[str] = None,
):
    stmt = (
        select(Product, Entitlement.granted_at)
        .join(Entitlement, Entitlement.product_id == Product.id)
        .where(Entitlement.user_email == user_email)
    )
    if kind:
        stmt = stmt.where(Product.kind == kind)
    if category:
        stmt = stmt.where(Product.category == category)
    if search:
        stmt = stmt.where(Product.title.icontains(search, autoescape=True))
    stmt = stmt.order_by(Entitlement.granted_at.desc(), Product.id)
    return db.execute(stmt).all()


def revoke(db: Session, user_email: str, product_id: int) -> bool:
    res = db.execute(
        delete(Entitlement).where(Entitlement.user_email == user_email, Entitlement.product_id == product_id)
    )
    db.commit()
    removed = (res.rowcount or 0) > 0
    log.info("entitlement_revoked", user=user_email, product_id=product_id, removed=removed)
    return removed
