"""Purchase (stock replenishment shipment) model."""
from sqlalchemy import Column, BigInteger, String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backoffice.database import Base, BigIntPK


class Purchase(Base):
    """Purchase header; owns its PurchaseDetail lines."""

    __tablename__ = 'purchase'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    number = Column(String(32), nullable=True, unique=True, index=True)
    supplier_id = Column(BigInteger, ForeignKey('supplier.id', ondelete='SET NULL'), nullable=True)
    reference_number = Column(String(150), nullable=True)
    notes = Column(Text, nullable=True)
    date = Column(Date, nullable=False, index=True)

    # Shipment metadata
    shipment_name = Column(String(150), nullable=True)
    package_country = Column(String(255), nullable=True)
    mode = Column(String(255), nullable=True)
    barcode = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    supplier = relationship('Supplier', back_populates='purchases')
    details = relationship(
        'PurchaseDetail',
        back_populates='purchase',
        cascade='all, delete-orphan',
        order_by='PurchaseDetail.id',
    )

    def __repr__(self):
        return f"<Purchase(id={self.id}, number='{self.number}', date={self.date})>"
