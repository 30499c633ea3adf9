"""Named counters for gap-free, monotonic numbering (request numbers)."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from relief_kernel.db.base import Base


class SequenceCounter(Base):
    """One row per named sequence. Row locks serialize allocation."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(nullable=False, default=0)
