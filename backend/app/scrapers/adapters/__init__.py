"""Site contracts for the sources the pipeline scrapes.

Each module holds the URL templates, selectors and attribute literals of one
site; the pipeline stages import them instead of hard-coding markup.
"""

from . import couponfollow

__all__ = ["couponfollow"]
