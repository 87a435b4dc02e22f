from pathlib import Path
from typing import List, Optional

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import settings

# Ensure data directory exists
db_path = settings.DATABASE_URL.replace("sqlite:///", "")
if db_path.startswith("./"):
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

# Stores are driven synchronously from the caller's thread
engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
)

SessionLocal = sessionmaker(
    bind=engine,
    class_=Session,
    expire_on_commit=False,
    future=True,
)

# Declarative base for models
Base = declarative_base()


def init_db(bind: Optional[Engine] = None) -> List[str]:
    """
    Create the auth tables that do not exist yet.

    Safe to call on every store startup: existing tables are inspected
    first and left untouched.

    Returns:
        Names of the tables created by this call.
    """
    import models  # noqa: F401  (registers every table on Base.metadata)

    bind = bind if bind is not None else engine
    existing = set(inspect(bind).get_table_names())
    missing = [
        table
        for table in Base.metadata.sorted_tables
        if table.name not in existing
    ]
    if missing:
        Base.metadata.create_all(bind, tables=missing)
    return [table.name for table in missing]


def close_db():
    """Close database connection."""
    engine.dispose()
