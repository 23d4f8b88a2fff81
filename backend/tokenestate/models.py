from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime
from tokenestate.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    wallet_address = Column(String, nullable=True)  # Principal / account id from the wallet provider
    kyc_status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    investments = relationship("Investment", back_populates="user")


class Property(Base):
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    location = Column(String, nullable=False)
    property_type = Column(String, nullable=False)
    total_value = Column(Numeric(12, 2), nullable=False)
    total_tokens = Column(Integer, nullable=False)
    available_tokens = Column(Integer, nullable=False)
    expected_roi = Column(Numeric(5, 2), nullable=False)  # Percentage, e.g. 14.20
    min_investment = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    investments = relationship("Investment", back_populates="property")

    @property
    def is_investable(self) -> bool:
        return bool(self.is_active) and (self.available_tokens or 0) > 0


class Investment(Base):
    __tablename__ = "investments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    tokens_owned = Column(Integer, nullable=False)
    investment_amount = Column(Numeric(10, 2), nullable=False)
    current_value = Column(Numeric(10, 2), nullable=False)
    purchase_date = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="investments")
    property = relationship("Property", back_populates="investments")
