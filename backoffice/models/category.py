"""Category model."""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backoffice.database import Base, BigIntPK
from backoffice.utils.media import public_object_url


class Category(Base):
    """Product Category."""

    __tablename__ = 'category'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    image_path = Column(String(255), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    products = relationship('Product', back_populates='category', order_by='Product.name')

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"

    @property
    def image_url(self):
        return public_object_url(self.image_path)
