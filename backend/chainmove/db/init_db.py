"""
Create the ledger tables.

    python -m chainmove.db.init_db
"""
import logging
from chainmove.db.base import Base
from chainmove.db.session import engine

logger = logging.getLogger(__name__)


def init_db():
    """Create every table registered on Base.metadata."""
    import chainmove.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info(f"Created {len(Base.metadata.tables)} ledger tables")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Initializing database...")
    init_db()
    print("Database initialized successfully!")
