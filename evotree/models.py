from __future__ import annotations

from datetime import datetime, timezone
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, LargeBinary, DateTime


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueEntry(Base):
    """Almacén clave-valor donde vive el árbol principal (JSON en bytes)."""

    __tablename__ = "kv_entry"
    __table_args__ = (
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
            "extend_existing": True,
        },
    )

    # 191 = máximo indexable con utf8mb4 en InnoDB antiguo
    key: Mapped[str] = mapped_column(String(191), primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary(16_777_215), nullable=False)  # MEDIUMBLOB en MySQL
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
