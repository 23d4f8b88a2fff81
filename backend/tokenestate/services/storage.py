"""
Read-only queries over the marketplace records.

The recommendation engine only ever reads; investments and transactions are
written elsewhere.
"""
from typing import List, Optional
from sqlalchemy.orm import Session
from tokenestate.models import User, Property, Investment


def get_properties(db: Session) -> List[Property]:
    """All active properties, in id order."""
    return (
        db.query(Property)
        .filter(Property.is_active.is_(True))
        .order_by(Property.id.asc())
        .all()
    )


def get_property(db: Session, property_id: int) -> Optional[Property]:
    return db.query(Property).filter(Property.id == property_id).first()


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_investments_by_user(db: Session, user_id: int) -> List[Investment]:
    return (
        db.query(Investment)
        .filter(Investment.user_id == user_id)
        .order_by(Investment.purchase_date.asc(), Investment.id.asc())
        .all()
    )
