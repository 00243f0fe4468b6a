# Services package init
"""
Verdant Backend: Services Layer
===============================

What:  Care pipeline logic between routes (HTTP) and the database.

Service Inventory:
    - plant_status:        pure status/next-date derivation (STATUS_RULES)
    - storage:             PlantStorage, persistence operations over a session
    - reminder_scheduler:  reschedules reminders and last-care timestamps
    - photo_service:       decode, normalize and store care photos
    - care_log_service:    synchronous ingestion of care events
    - enrichment:          detached, best-effort AI enrichment pipeline
    - ai_base:             Vision/Language capability interfaces
    - gemini_service:      Gemini implementation of both capabilities
    - plant_service:       read paths (plant view, list, reminders, dashboard)
"""
