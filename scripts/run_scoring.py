#!/usr/bin/env python3
"""
Trust score batch launcher script.

Recalculates every user's trust score from their recorded recommendations
using the dev.yaml configuration, then logs the leaderboard.
"""

import asyncio
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from trustengine.runner.pipeline import main


if __name__ == "__main__":
    if len(sys.argv) == 1:
        sys.argv = ["trustengine", "--config", "configs/dev.yaml", "--profile", "dev"]

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nTrust scoring stopped by user.")
        sys.exit(0)
