"""
Photo Log API.

Category/date photo logging: uploads are resized and stored on disk,
metadata is kept in a relational table, and a gallery lists and deletes them.
"""

__version__ = "1.0.0"
