"""
DataMerge
---------
Finds records that exist in two uploaded datasets, separates the records
unique to each, merges the duplicates with per-column operations and exports
the results.
"""

__version__ = "1.0.0"
