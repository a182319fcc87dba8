from contextlib import contextmanager
from threading import Lock
from weakref import WeakValueDictionary

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from booking_engine.core import config


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_schema_checked = False

_provider_locks: WeakValueDictionary = WeakValueDictionary()
_provider_locks_guard = Lock()


def ensure_booking_schema() -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())

        with engine.begin() as connection:
            if 'appointments' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appt_provider_range ON appointments(provider_id, start_time, end_time)')
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appt_consumer_start ON appointments(consumer_id, start_time)')
                )
            if 'time_blocks' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_block_provider_range ON time_blocks(provider_id, start_datetime, end_datetime)')
                )
            if 'consumer_package_balances' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_cpb_redeemable '
                        'ON consumer_package_balances(consumer_id, provider_id, service_id, expires_at)'
                    )
                )

        _booking_schema_checked = True


def _get_provider_lock(provider_id: int) -> Lock:
    with _provider_locks_guard:
        lock = _provider_locks.get(provider_id)
        if lock is None:
            lock = Lock()
            _provider_locks[provider_id] = lock
        return lock


@contextmanager
def provider_lock(db: Session, provider_id: int):
    """Serialize writers of one provider's calendar until the transaction ends.

    The caller must commit inside the block. Any exception rolls the session
    back before the lock is released.
    """
    lock = _get_provider_lock(provider_id)
    with lock:
        try:
            if db.get_bind().dialect.name == 'postgresql':
                db.execute(text('SELECT pg_advisory_xact_lock(:lock_id)'), {'lock_id': provider_id})
            yield
        except Exception:
            db.rollback()
            raise
