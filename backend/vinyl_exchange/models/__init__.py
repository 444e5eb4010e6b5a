"""ORM Models — SQLAlchemy declarative models for all marketplace entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - User references are bare UUIDs: identities live in the external auth provider

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from vinyl_exchange.models.listing import Listing  # noqa: F401
from vinyl_exchange.models.offer import Offer  # noqa: F401
from vinyl_exchange.models.order import Order  # noqa: F401
from vinyl_exchange.models.review import Review  # noqa: F401
from vinyl_exchange.models.profile import Profile  # noqa: F401
