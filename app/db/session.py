from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core import config
DATABASE_URL = config.DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Request-scoped database session.

    Services receive this session explicitly; tests override this dependency
    to point the whole app at an in-memory database.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
