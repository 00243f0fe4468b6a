# Routes package init
"""
Verdant Backend: API Routes Package
===================================

Route Inventory:
    - care_logs.py:  POST /api/plants/{plant_id}/care-logs  (record care)
                     GET  /api/plants/{plant_id}/care-logs  (care history)
    - plants.py:     GET  /api/plants                       (plants with status)
                     GET  /api/plants/{plant_id}            (one plant)
                     GET  /api/plants/{plant_id}/reminders  (reminders)
    - dashboard.py:  GET  /api/dashboard/care-needed        (what needs care now)
    - files.py:      GET  /api/files/{path}                 (stored photos)
    - health.py:     GET  /health                           (service health)

Routes stay thin: read the request, call a service, shape the response.
"""
