"""
Read-path helpers: the result file cache and shallow summaries.
"""

from .file_cache import FileCache
from .summary import describe, preview, shallow_summary

__all__ = ["FileCache", "describe", "preview", "shallow_summary"]
