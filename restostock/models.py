"""Declarative base for the stock tables.

``restostock.tables`` maps categories, products and the stock history onto
it. Tests build the schema from ``Base.metadata``; Alembic compares the same
metadata against the live database.
"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
