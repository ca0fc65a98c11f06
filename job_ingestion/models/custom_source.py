"""Custom source model: user-defined scraper definitions."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from job_ingestion.config import CustomSourceConfig

from .base import Base


class CustomSource(Base):
    __tablename__ = "custom_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    url: Mapped[str] = mapped_column(String(2048), default="")
    source_type: Mapped[str] = mapped_column(String(20), default="rss")
    options: Mapped[dict] = mapped_column(JSON, default=dict)
    max_pages: Mapped[int] = mapped_column(Integer, default=1)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def to_config(self) -> CustomSourceConfig:
        return CustomSourceConfig(
            key=self.source_key,
            name=self.name or self.source_key,
            url=self.url,
            source_type=self.source_type,
            options=dict(self.options or {}),
            enabled=bool(self.enabled),
            max_pages=self.max_pages or 1,
        )
