"""Declarative base shared by every fairdraw model."""

from sqlalchemy.orm import DeclarativeBase

from fairdraw.db.metadata import metadata_obj


class Base(DeclarativeBase):
    metadata = metadata_obj


__all__ = ["Base"]
