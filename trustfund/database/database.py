from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from fastapi import Request
from trustfund.models import Base
import structlog
import time

logger = structlog.get_logger(__name__)


def build_engine(settings) -> Engine:
    """Create the engine for the configured database"""
    if settings.is_sqlite:
        # SQLite is used by tests and local runs; sessions cross threads under the ASGI server
        return create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            echo=False,
        )

    # psycopg2 for PostgreSQL
    return create_engine(
        settings.database_url,
        pool_size=20,
        max_overflow=30,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=False  # Disable SQLAlchemy query logging
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def wait_for_db(engine: Engine, max_retries=30, delay=2):
    """Wait for database to be available with retries"""
    for attempt in range(max_retries):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection established")
            return True
        except Exception as e:
            logger.warning(
                "Database connection attempt failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                error=str(e)
            )
            if attempt < max_retries - 1:
                time.sleep(delay)
            else:
                logger.error("Failed to connect to database after all retries")
                raise
    return False


def init_db(engine: Engine, max_retries=30, delay=2):
    """Wait for the database, then create tables"""
    try:
        wait_for_db(engine, max_retries=max_retries, delay=delay)
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error("Failed to create database tables", error=str(e))
        raise


def get_db(request: Request):
    """Dependency to get a database session from the application context"""
    db = request.app.state.context.session_factory()
    try:
        yield db
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Database session error", error=str(e))
        raise
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def close_db(engine: Engine):
    """Close database connections"""
    engine.dispose()
    logger.info("Database connection closed")
