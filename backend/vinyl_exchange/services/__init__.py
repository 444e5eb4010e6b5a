"""Services Layer — imperative shell around the pure core.

Invariants:
    - One service class per aggregate: listings, offers, orders, payments, reviews
    - Services own the transaction boundary (commit) and publish change events after it

Design Decisions:
    - Core plans the write, the service applies it with a compare-and-set UPDATE
"""
