"""Services Layer — export job state machine and the background export worker.

Invariants:
    - Services own the DB transaction: every job transition commits with its audit entry
    - The worker never shares an AsyncSession between concurrent exports
"""
