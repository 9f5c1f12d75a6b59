"""
TaskPilot
SQLAlchemy extension instance shared by every model module.

Usage:
    from taskpilot.models import db
"""

import uuid

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def new_uuid() -> str:
    """Primary key default for UUID-keyed tables (stored as 36-char strings)."""
    return str(uuid.uuid4())
