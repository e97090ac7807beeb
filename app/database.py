from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, DeclarativeBase
from sqlalchemy.pool import QueuePool, StaticPool
from app.config import settings
import logging

logger = logging.getLogger(__name__)


# ─── Base Model ────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.
    All models in app/models/ should inherit from this class.
    """
    pass


# ─── Connection Pool Lifecycle ─────────────────────────────────────────────────
class DatabaseManager:
    """
    Process-wide engine + session factory.

    The engine is created by init() on application startup and released by
    dispose() on shutdown. Request handlers never touch the engine directly;
    they receive a Session through the get_db dependency.
    """

    def __init__(self):
        self.engine: Engine | None = None
        self.SessionLocal: sessionmaker | None = None

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None

    def init(self, database_url: str | None = None) -> Engine:
        url = database_url or settings.DATABASE_URL
        if self.engine is not None:
            self.dispose()

        if url.startswith("sqlite"):
            # In-memory SQLite must share one connection across threads
            kwargs = {"connect_args": {"check_same_thread": False}}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            self.engine = create_engine(url, echo=settings.DATABASE_ECHO, **kwargs)
        else:
            self.engine = create_engine(
                url,
                poolclass=QueuePool,
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                pool_timeout=settings.DATABASE_POOL_TIMEOUT,
                pool_pre_ping=True,          # Detect stale connections before using them
                echo=settings.DATABASE_ECHO,
            )

        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,      # Avoid DetachedInstanceError after commit
        )
        logger.info(f"Database engine initialised ({self.engine.dialect.name})")
        return self.engine

    def dispose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database engine disposed")
        self.engine = None
        self.SessionLocal = None

    def session(self) -> Session:
        if self.SessionLocal is None:
            self.init()
        return self.SessionLocal()


db_manager = DatabaseManager()


# ─── Dependency Injection ──────────────────────────────────────────────────────
def get_db():
    """
    FastAPI dependency that provides a database session per request.
    Automatically closes session after request completes.

    Usage:
        @router.post("/otp/send")
        def send(db: Session = Depends(get_db)):
            ...
    """
    db = db_manager.session()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ─── Health Check ──────────────────────────────────────────────────────────────
def check_db_connection() -> bool:
    """Verify database is reachable. Used at startup."""
    try:
        if not db_manager.is_initialized:
            db_manager.init()
        with db_manager.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
