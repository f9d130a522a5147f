"""
Ingestion of externally produced data.

Modules
-------
files   JSON loaders for asset snapshots, signals, prices and observations.
"""
