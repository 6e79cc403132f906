"""
Order store

Orders and their line items in the relational database. An order and all
of its items are written in one transaction; once committed they are never
modified.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import relationship, selectinload

from database import Base
from errors import PersistenceError, ServiceUnavailableError
from schemas import OrderOut

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    total = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price_at_purchase = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")


class OrderStore:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    def create(self, user_id: str, total: float, items: List[dict]) -> OrderOut:
        order = Order(
            user_id=user_id,
            total=total,
            items=[
                OrderItem(product_id=i["product_id"], quantity=i["quantity"], price_at_purchase=i["price_at_purchase"])
                for i in items
            ],
        )
        session = self.session_factory()
        try:
            session.add(order)
            session.commit()
            session.refresh(order)
            return OrderOut.model_validate(order)
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to persist order for user %s", user_id)
            raise PersistenceError("Failed to persist order") from e
        finally:
            session.close()

    def list_for_user(self, user_id: str) -> List[OrderOut]:
        with self._reading("list orders") as session:
            rows = (
                session.query(Order)
                .options(selectinload(Order.items))
                .filter(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .all()
            )
            return [OrderOut.model_validate(o) for o in rows]

    def get(self, order_id: int) -> Optional[OrderOut]:
        with self._reading("load order") as session:
            order = session.query(Order).options(selectinload(Order.items)).filter(Order.id == order_id).first()
            return OrderOut.model_validate(order) if order else None

    def ping(self) -> None:
        with self._reading("ping order database") as session:
            session.execute(text("SELECT 1"))

    @contextmanager
    def _reading(self, action: str):
        session = self.session_factory()
        try:
            yield session
        except OperationalError as e:
            logger.exception("Order database unavailable while trying to %s", action)
            raise ServiceUnavailableError("Order store unavailable") from e
        except SQLAlchemyError as e:
            logger.exception("Order database error while trying to %s", action)
            raise PersistenceError(f"Failed to {action}") from e
        finally:
            session.close()
