"""Vinyl Exchange Application Package — marketplace negotiation and settlement backend.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""
