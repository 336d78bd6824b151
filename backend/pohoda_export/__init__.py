"""Pohoda Export Package — order-to-invoice export into the Pohoda accounting system.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""
