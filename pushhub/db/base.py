"""Declarative base shared by the subscriber, history and asset tables."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for push broadcast models."""
