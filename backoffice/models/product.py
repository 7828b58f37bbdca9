"""Product model."""
from sqlalchemy import Column, BigInteger, String, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backoffice.database import Base, BigIntPK
from backoffice.utils.media import public_object_url


class Product(Base):
    """Product with its running stock quantity and weighted-average unit cost."""

    __tablename__ = 'product'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    category_id = Column(BigInteger, ForeignKey('category.id', ondelete='SET NULL'), nullable=True)
    sku = Column(String, nullable=True)
    wholesale_sku = Column(String, nullable=True)
    retail_sku = Column(String, nullable=True)
    barcode = Column(String, nullable=True)
    wholesale_barcode = Column(String, nullable=True)
    retail_barcode = Column(String, nullable=True)
    wholesale_price = Column(Numeric(12, 2), nullable=True)
    retailsale_price = Column(Numeric(12, 2), nullable=True)
    image_path = Column(String(255), nullable=True)
    track_stock = Column(Boolean, nullable=False, default=True, server_default='true')
    continue_selling_when_out_of_stock = Column(Boolean, nullable=False, default=False, server_default='false')
    # Signed: unguarded reversals can drive it below zero
    in_stock = Column(Numeric(14, 3), nullable=False, default=0, server_default='0')
    cost = Column(Numeric(14, 4), nullable=False, default=0, server_default='0')  # Costo promedio ponderado
    # Exact running value of the stock (sum of qty * unit cost); NULL means in_stock * cost
    inventory_value = Column(Numeric(28, 7), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    category = relationship('Category', back_populates='products')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', in_stock={self.in_stock}, cost={self.cost})>"

    @property
    def image_url(self):
        """Public URL for the product image, or None."""
        return public_object_url(self.image_path)
