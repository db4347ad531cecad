"""
app/models/account.py

Modelo ORM das contas conhecidas pelo relay.

Uma única conta é local (a do próprio serviço, com chave privada);
todas as outras são actors remotos vistos em atividades recebidas.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountRecord(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        # No máximo uma conta local por instalação
        Index(
            "uq_accounts_local",
            "local",
            unique=True,
            sqlite_where=text("local = 1"),
            postgresql_where=text("local"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # URI canônica do actor, identificador único no Fediverso
    uri: Mapped[str] = mapped_column(String(2048), unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=_utcnow,
        onupdate=_utcnow,
    )

    username: Mapped[str] = mapped_column(String(255))
    host: Mapped[str] = mapped_column(String(255))

    inbox: Mapped[str] = mapped_column(String(2048))
    outbox: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    shared_inbox: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    public_key: Mapped[str] = mapped_column(Text)
    # Presente se e somente se a conta for local
    private_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    local: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<AccountRecord id={self.id!r} uri={self.uri!r} local={self.local!r}>"
