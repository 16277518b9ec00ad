# Routes package init
"""
NoteKeeper Backend — API Routes Package
=========================================

Route Inventory:
    - notes.py:   /notes CRUD and /notes/{id}/images attach/detach
    - files.py:   GET /files/{path}   (images of the local blob store)
    - health.py:  GET /health         (service health check)

Routes stay thin: resolve the caller, call NoteService, return its result.
"""
