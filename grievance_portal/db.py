# grievance_portal/db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

Base = declarative_base()


def _make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


class Database:
    """Engine + session factory for one database URL.

    Built once from Settings and handed to every store; there is no module-level
    engine, so tests can point a fresh instance at a disposable SQLite file.
    """

    def __init__(self, url: str):
        self.url = url
        self.engine = _make_engine(url)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False,
                                             expire_on_commit=False, bind=self.engine)

    def session(self) -> Session:
        return self._session_factory()

    def init_db(self):
        # import models lazily so Base metadata knows every table
        import grievance_portal.models as models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def dispose(self):
        self.engine.dispose()
