"""
Social Match - embedding-backed similarity ranking for posts and user profiles.
"""

__version__ = "1.0.0"
