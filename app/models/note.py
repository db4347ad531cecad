"""
app/models/note.py

Modelo ORM dos Notes acompanhados (top-level e respostas).

reply_to_id e root_id não têm foreign key: apagar um Note não propaga
para as respostas, que ficam com referências pendentes.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteRecord(Base):
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=_utcnow,
        onupdate=_utcnow,
    )

    # Autor do Note
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), index=True)

    uri: Mapped[str] = mapped_column(String(2048), unique=True)

    reply_to_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    root_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    blog_id: Mapped[int] = mapped_column(ForeignKey("blogs.id"), index=True)

    likes: Mapped[int] = mapped_column(Integer, default=0)
    reposts: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<NoteRecord id={self.id!r} uri={self.uri!r}>"
