"""
Expose common test utilities so tests can import directly:
    from tests import make_asset, make_settings
"""

from .utils import FakeDam, make_asset, make_settings

__all__ = ["FakeDam", "make_asset", "make_settings"]
