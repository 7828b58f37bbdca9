"""Key/value application settings."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from backoffice.database import Base, BigIntPK


class Setting(Base):
    """Application setting stored as a key/value row."""

    __tablename__ = 'setting'

    CURRENCY_SYMBOL = 'currency_symbol'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Setting(key='{self.key}', value='{self.value}')>"

    @classmethod
    def get_value(cls, session, key, default=None):
        row = session.query(cls).filter(cls.key == key).first()
        if row is None or row.value is None:
            return default
        return row.value

    @classmethod
    def set_value(cls, session, key, value):
        """Upsert a setting (caller commits)."""
        row = session.query(cls).filter(cls.key == key).first()
        if row is None:
            row = cls(key=key, value=value)
            session.add(row)
        else:
            row.value = value
        return row
