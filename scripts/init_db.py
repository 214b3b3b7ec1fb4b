import argparse
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import init_db, session_maker
from ingestion.checkpoint_store import CheckpointStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_database(reset_sources=None):
    logger.info(f"Preparing checkpoint database {settings.CHECKPOINT_DATABASE_URL}")
    init_db()

    if reset_sources:
        with session_maker() as session:
            store = CheckpointStore(session)
            for source_name in reset_sources:
                store.clear(source_name)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create checkpoint tables")
    parser.add_argument("--reset", nargs="*", default=[], metavar="SOURCE",
                        help="Forget the checkpoints of these sources")
    args = parser.parse_args()
    init_database(args.reset)
