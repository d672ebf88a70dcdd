"""Local Parquet cache and WRDS extraction."""

from .cache import cache_root, read_parquet, save_parquet

__all__ = ["cache_root", "read_parquet", "save_parquet"]
