from sqlalchemy import Column, String, DateTime, Integer, Text

from assetdesk.database import Base, utcnow


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(64), primary_key=True)  # e.g. AST-001
    name = Column(String(255), nullable=False)
    type = Column(String(100), nullable=False)
    property_code = Column(String(100), nullable=True)  # property the asset sits in
    department = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    condition = Column(String(100), nullable=True)
    status = Column(String(50), nullable=False, default="active")
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    serial_number = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
