"""
Core Utilities Package

This package contains helpers used throughout the quote service.

Modules:
    - time: Timezone parsing and zone-local date arithmetic
    - tabular: Column/row payload normalization
"""

from core.utils.time import current_utc_datetime
from core.utils.tabular import zip_columns

__all__ = ["current_utc_datetime", "zip_columns"]
