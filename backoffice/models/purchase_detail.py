"""Purchase Detail (line item) model."""
from sqlalchemy import Column, BigInteger, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from backoffice.database import Base, BigIntPK


class PurchaseDetail(Base):
    """Purchase line: units received of one product at a historical unit cost."""

    __tablename__ = 'purchase_detail'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    purchase_id = Column(BigInteger, ForeignKey('purchase.id', ondelete='CASCADE'), nullable=False, index=True)
    # Nullable: deleting a product leaves the historic line dangling
    product_id = Column(BigInteger, ForeignKey('product.id', ondelete='SET NULL'), nullable=True, index=True)
    cost = Column(Numeric(14, 4), nullable=False, default=0)
    quantity = Column(Numeric(14, 3), nullable=False, default=0)

    # Relationships
    purchase = relationship('Purchase', back_populates='details')
    product = relationship('Product')

    def __repr__(self):
        return f"<PurchaseDetail(id={self.id}, product_id={self.product_id}, quantity={self.quantity}, cost={self.cost})>"

    @property
    def line_total_cost(self):
        """Total cost of this line (unit cost times quantity)."""
        return (self.cost or 0) * (self.quantity or 0)
