"""
Verdant Backend: Application Package
====================================

Plant care tracking service. Records care events (watering, fertilizing,
repotting, ...), keeps one reminder per plant and care type, derives each
plant's current status from its care dates, and enriches photo-bearing care
events with AI in the background.

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Care Pipeline)    │  ← ingest, schedule, derive, enrich
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
