from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from workpilot.config import DATABASE_URL, SQL_ECHO
from workpilot.db_models import Base

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# SQLAlchemy setup
engine = create_engine(DATABASE_URL, echo=SQL_ECHO, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
