from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, Text, CheckConstraint
from sqlalchemy.orm import relationship
from shared.config.database import Base


class Session(Base):
    __tablename__ = "sessions"
    __table_args__ = {"schema": "session_schema"}

    session_id = Column(String, primary_key=True, index=True) # UUID string
    user_id = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)

    # Checkout marker: fingerprint of the cart that produced checkout_order_id
    checkout_cart_key = Column(Text, nullable=True)
    checkout_order_id = Column(Integer, nullable=True)

    items = relationship(
        "SessionItem",
        back_populates="session",
        lazy="selectin",
        order_by="SessionItem.id",
        cascade="all, delete-orphan",
    )


class SessionItem(Base):
    __tablename__ = "session_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_session_items_quantity"),
        {"schema": "session_schema"},
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("session_schema.sessions.session_id", ondelete="CASCADE"))
    product_id = Column(Integer, nullable=False)
    quantity = Column(Integer, default=1)

    session = relationship("Session", back_populates="items")
