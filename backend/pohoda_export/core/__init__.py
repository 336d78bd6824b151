"""Core Layer — pure domain logic: invoice mapping, XML build/parse, job transitions.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - No IO, no async: functions take values and return values (or raise domain errors)

Design Decisions:
    - Functional core separated from imperative shell: services/ owns sessions and HTTP
"""
