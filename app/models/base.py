"""Declarative Base shared by the RBAC, user, event, branch and media models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
