"""FastAPI dependencies for database access."""

from collections.abc import Callable

from sqlalchemy.orm import Session

from relaychat.db.session import get_sessionmaker

SessionFactory = Callable[[], Session]


def get_session_factory() -> SessionFactory | None:
    """Return the store's session factory, or None in non-persistent mode."""

    return get_sessionmaker()
