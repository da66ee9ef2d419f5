from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from stockres.app.core.config import settings

DATABASE_URL = settings.database_url


def use_immediate_transactions(engine: Engine) -> Engine:
    """
    SQLite : FOR UPDATE n'existe pas et pysqlite n'ouvre la transaction qu'au
    premier INSERT/UPDATE. On prend le verrou d'écriture dès le BEGIN, ce qui
    sérialise les transactions (recette pysqlite de la doc SQLAlchemy).
    """

    @event.listens_for(engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def make_engine(url: str, **kwargs) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True, **kwargs)

    # timeout : attente max (s) du verrou d'écriture tenu par une autre transaction
    connect_args = {"check_same_thread": False, "timeout": 30}
    return use_immediate_transactions(create_engine(url, connect_args=connect_args, **kwargs))


engine = make_engine(DATABASE_URL, echo=settings.database_echo)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
