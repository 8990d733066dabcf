"""BillHistory database model - append-only audit of unit bill changes."""

import json
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tenant_billing.core.database import Base
from tenant_billing.models.enums import HistoryAction


class BillHistory(Base):
    """Audit entry for one unit bill mutation.

    ``unit_bill_id`` is a plain column, not a foreign key: entries outlive
    bills removed by a settlement rollback.
    """

    __tablename__ = "bill_history"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    unit_bill_id: Mapped[int] = mapped_column(index=True)
    action: Mapped[HistoryAction] = mapped_column(String(20))
    edit_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    old_values: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON snapshot
    new_values: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON snapshot
    changed_by: Mapped[int | None] = mapped_column(nullable=True)
    changed_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC), index=True)

    def get_old_values(self) -> dict[str, Any] | None:
        return json.loads(self.old_values) if self.old_values else None

    def get_new_values(self) -> dict[str, Any] | None:
        return json.loads(self.new_values) if self.new_values else None
