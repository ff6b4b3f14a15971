"""Database backup script: creates a timestamped copy of the ledger store."""

import logging
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fieldstock.config import Config

logger = logging.getLogger(__name__)

KEEP_BACKUPS = 10


def backup_database(db_path: Path = None, backup_dir: Path = None):
    """Copy the database to the backup directory with a timestamp.

    Uses SQLite's online backup so a copy taken while another process
    writes is still consistent. Returns the backup path, or None if there
    is no database yet.
    """
    db_path = Path(db_path or Config.DATABASE_PATH)
    backup_dir = Path(backup_dir or Config.BACKUP_PATH)
    backup_dir.mkdir(parents=True, exist_ok=True)

    if not db_path.exists():
        print(f"Database not found at {db_path}")
        return None

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_file = backup_dir / f"fieldstock_{timestamp}.db"
    source = sqlite3.connect(str(db_path), timeout=Config.BUSY_TIMEOUT)
    target = sqlite3.connect(str(backup_file))
    try:
        source.backup(target)
    finally:
        target.close()
        source.close()
    print(f"Backup created: {backup_file}")
    logger.info(f"Backed up {db_path} to {backup_file}")

    # Keep only the most recent backups
    backups = sorted(backup_dir.glob("fieldstock_*.db"), reverse=True)
    for old in backups[KEEP_BACKUPS:]:
        old.unlink()
        print(f"Removed old backup: {old.name}")

    return backup_file


if __name__ == "__main__":
    logging.basicConfig(level=Config.LOG_LEVEL)
    backup_database()
