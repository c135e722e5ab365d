"""Declarative base shared by every model and by Alembic."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
