"""
Cycle lifecycle state machine.

Modules
-------
errors    CycleNotFoundError, IncompleteDataError, InvalidCycleStateError.
metrics   Overall and per-classification accuracy aggregation.
manager   CycleManager: create, detect due, complete, exclude, list, stats.
"""
