"""
macrocal_shared — shared utilities, models, and configuration for the macrocal platform.

Usage:
    from macrocal_shared.config import settings
    from macrocal_shared.db import get_supabase_client
    from macrocal_shared.models import Indicator, Release, SyncLog
    from macrocal_shared.constants import CATEGORY_RULES, CURRENCY_BY_REGION
"""

__version__ = "0.1.0"
