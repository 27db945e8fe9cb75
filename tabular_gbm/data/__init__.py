"""
Data package for loading and caching dataset artifacts.

This package exposes functions to load a tabular regression dataset from a
CSV/parquet file or a SQL table, to read/write a cached parquet copy for fast
local reuse, and to split it into train and test partitions.
"""

