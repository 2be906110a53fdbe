"""Run the coupon scraper over one or more categories.

Usage:
    python scripts/run_scraper.py
    python scripts/run_scraper.py --letters a,b,c
    python scripts/run_scraper.py --letters other --dry-run

Setup (run once):
    pip install -e .
    playwright install chromium
"""

import os
import sys

# Add backend to path so we can import app modules without installing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from app.scrapers.runner import cli  # noqa: E402


if __name__ == "__main__":
    sys.exit(cli())
