# Routes package init
"""
NoteSync Backend — API Routes Package
======================================

Route Inventory:
    - categories.py:  /api/categories            (list, create, rename, delete)
    - notes.py:       /api/notes                 (CRUD, toggles, category assignment)
    - generation.py:  /api/notes/from-pdf, /api/notes/doc/{doc_id}/summarize|quiz
    - activity.py:    /api/activity              (recent activity for the caller)
    - health.py:      /health

Routes stay thin: identity and request parsing here, rules in the services.
"""
