"""Unit of work: collect record mutations and commit them atomically."""

import enum
import logging
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

from sqlalchemy.orm import Session

from tenant_billing.core.exceptions import BillingError, TransactionFailed

logger = logging.getLogger(__name__)


class MutationKind(str, enum.Enum):
    """Kind of row change recorded by a unit of work."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class Mutation:
    """One pending row change."""

    kind: MutationKind
    entity: Any
    changes: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        return f"{self.kind.value} {type(self.entity).__name__}"


class UnitOfWork:
    """Collects inserts, updates and deletes and applies them in one transaction.

    Used as a context manager around a request-scoped session::

        with UnitOfWork(db) as uow:
            uow.insert(settlement)
            uow.update(tenant, status=TenantStatus.MOVED_OUT)

    Leaving the block normally commits every mutation; any exception rolls the
    session back so none of them are visible. Billing errors propagate as they
    are, anything else is wrapped in ``TransactionFailed``. Reads made inside
    the block share the transaction that the writes commit in.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.mutations: list[Mutation] = []
        self._applied = 0

    def insert(self, entity: Any) -> Any:
        self.mutations.append(Mutation(MutationKind.INSERT, entity))
        return entity

    def update(self, entity: Any, **changes: Any) -> Any:
        self.mutations.append(Mutation(MutationKind.UPDATE, entity, changes))
        return entity

    def delete(self, entity: Any) -> None:
        self.mutations.append(Mutation(MutationKind.DELETE, entity))

    def flush(self) -> None:
        """Apply pending mutations and flush them, e.g. to obtain generated ids."""
        self._apply_pending()
        self.db.flush()

    def commit(self) -> None:
        self._apply_pending()
        self.db.commit()
        logger.debug("Committed %d mutations", len(self.mutations))

    def rollback(self) -> None:
        self.db.rollback()
        logger.debug("Rolled back %d mutations", len(self.mutations))

    def _apply_pending(self) -> None:
        for mutation in self.mutations[self._applied :]:
            if mutation.kind == MutationKind.INSERT:
                self.db.add(mutation.entity)
            elif mutation.kind == MutationKind.UPDATE:
                for name, value in mutation.changes.items():
                    setattr(mutation.entity, name, value)
            else:
                self.db.delete(mutation.entity)
            self._applied += 1

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is None:
            try:
                self.commit()
            except Exception as commit_exc:
                self.rollback()
                logger.exception("Commit failed after %d mutations", len(self.mutations))
                raise TransactionFailed() from commit_exc
            return False

        self.rollback()
        if isinstance(exc, BillingError) or not isinstance(exc, Exception):
            return False
        logger.exception(
            "Transaction aborted after %d mutations: %s",
            len(self.mutations),
            ", ".join(m.describe() for m in self.mutations) or "none",
        )
        raise TransactionFailed() from exc
