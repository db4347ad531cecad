"""
app/models/blog.py

Modelo ORM dos blogs (origens web) cujos posts são acompanhados como threads.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class BlogRecord(Base):
    __tablename__ = "blogs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=lambda: datetime.now(timezone.utc),
    )

    # URL do post do blog, extraída do primeiro link do Note top-level
    url: Mapped[str] = mapped_column(String(2048), unique=True)

    def __repr__(self) -> str:
        return f"<BlogRecord url={self.url!r}>"
