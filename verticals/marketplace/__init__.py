"""Marketplace vertical — catalog availability and bookstore ratings.

- SQLAlchemy models for users, bookstores, both book kinds and reviews
- Tagged item identifiers (regular vs library id spaces)
- Pure-function orderability rules
- Availability service with owner-scoped status changes
- Review service with transactional rating recomputation
- FastAPI router
"""
