"""
Module: supply_kernel.models.backup
Responsibility: Metadata for database backups.  The backup bytes live in
    external object storage; this row records where and how large.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase


class BackupRecord(TrackedBase):
    """A backup artifact registered by an administrator."""

    __tablename__ = "backups"

    filename: Mapped[str] = mapped_column(String(255), nullable=False)

    file_ref: Mapped[str] = mapped_column(String(1000), nullable=False)

    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BackupRecord {self.filename}>"
