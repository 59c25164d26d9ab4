# pylint: disable=too-few-public-methods
"""
SQLAlchemy models for durable cart storage
"""

from datetime import datetime
from typing import Optional, Type

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta, Mapped, declarative_base, mapped_column
from sqlalchemy.sql import func

from lucha_cart.infrastructure.utilities.constants import StorageSettings

_Base = declarative_base()

Base: Type[DeclarativeMeta] = _Base


class StoredValue(Base):
    """One key/value pair in one storage scope"""
    __tablename__ = StorageSettings.TABLE_NAME

    scope: Mapped[str] = mapped_column(String(100), primary_key=True)
    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )

    def __repr__(self):
        return f"<StoredValue(scope={self.scope}, key={self.key}, version={self.version})>"
