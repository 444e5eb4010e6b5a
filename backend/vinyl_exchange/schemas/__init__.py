"""Pydantic Schemas — request/response validation for API endpoints.

Invariants:
    - Schemas validate at system boundary (user input, API responses)
    - Money fields are Decimal with 2 decimal places; serialized as strings

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
    - Business rules (ratings range, image count, own-listing) stay in core/ so
      services enforce them regardless of the caller
"""
