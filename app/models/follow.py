"""
app/models/follow.py

Modelo ORM das relações de follow (direcionadas, possivelmente pendentes).

A URI da atividade Follow é a chave de idempotência usada para correlacionar
Accept, Reject e Undo posteriores.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class FollowRecord(Base):
    __tablename__ = "follows"
    __table_args__ = (
        # No máximo um follow por par ordenado (seguidor, seguido)
        UniqueConstraint("account_id", "target_account_id", name="uq_follows_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=lambda: datetime.now(timezone.utc),
    )

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )
    target_account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )

    uri: Mapped[str] = mapped_column(String(2048), unique=True)

    # True até o Accept do actor remoto chegar
    pending: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return (
            f"<FollowRecord {self.account_id!r} -> {self.target_account_id!r} "
            f"pending={self.pending!r}>"
        )
