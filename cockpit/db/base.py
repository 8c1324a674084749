from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# Ensure models are imported for Alembic's autogeneration.
import cockpit.models.document  # noqa: E402,F401

__all__ = ["Base"]
