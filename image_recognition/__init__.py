"""
Image recognition tagger for Elvis DAM assets.
"""

__version__ = "1.0.0"
