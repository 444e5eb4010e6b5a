"""Infrastructure Layer — external service clients and cross-cutting concerns.

Invariants:
    - Infrastructure imports only error types, value types and pure helpers from core/
    - All external calls wrapped with retry/timeout/error mapping

Design Decisions:
    - Resilient wrappers over raw clients: callers see PaymentError, never SDK exceptions
"""
