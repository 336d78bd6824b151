"""Infrastructure Layer — database, mServer client, payload store and logging.

Invariants:
    - Infrastructure never imports from services/ or api/
    - Every mServer failure is mapped to PohodaTransportError before it leaves this layer

Design Decisions:
    - Thin wrappers over httpx and SQLAlchemy; domain decisions stay in core/
"""
