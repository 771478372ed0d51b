"""
Import the legacy JSON exports into the primary store.
Reads DATABASE_URL and DATA_DIR from the environment (or .env).
Run: python scripts/migrate_data.py [--data-dir PATH] [--database-url URL]
"""

import os
import sys

# Add backend directory to path for traowl imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from traowl.ingestion.migrate import main

if __name__ == "__main__":
    sys.exit(main())
