"""Declarative base for the remote store schema."""
from __future__ import annotations

from sqlalchemy.orm import declarative_base

Base = declarative_base()
