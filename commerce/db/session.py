from contextlib import contextmanager
import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..errors import CommerceError, Conflict, Internal


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/app.db")

# Ensure sqlite file parent directory exists to avoid 'unable to open database file'
if DATABASE_URL.startswith("sqlite:///") and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.split("sqlite:///")[-1]
    try:
        parent = Path(db_path).expanduser().resolve().parent
        parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        # best-effort; real error will surface on connect if still invalid
        pass

engine = create_engine(DATABASE_URL, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def make_session_factory(factory: sessionmaker):
    """Wrap a sessionmaker into a transactional scope.

    One scope is one transaction: it commits when the block exits normally and
    rolls back on any exception. Business errors propagate unchanged; a lost
    optimistic-lock race becomes ``Conflict`` and any other storage failure
    becomes ``Internal``.
    """

    @contextmanager
    def scope():
        session = factory()
        try:
            yield session
            session.commit()
        except CommerceError:
            session.rollback()
            raise
        except StaleDataError as exc:
            session.rollback()
            raise Conflict("The record was modified concurrently, please retry") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise Internal(str(exc)) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return scope


get_session = make_session_factory(SessionLocal)


def init_db(bind=None) -> None:
    from .. import models  # noqa: F401  registers every table on Base.metadata
    from ..models.base import Base

    Base.metadata.create_all(bind=bind or engine)
