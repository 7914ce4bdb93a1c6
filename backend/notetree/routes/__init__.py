# Routes package init
"""
NoteTree Backend — API Routes Package
=====================================

Route Inventory:
    - projects.py: GET/POST   /api/projects
                   GET/PATCH/DELETE /api/projects/{id}
                   GET        /api/trash
                   POST       /api/trash/{id}/restore
                   DELETE     /api/trash/{id}
    - notes.py:    GET/PUT/POST /api/projects/{id}/notes
                   GET/PATCH/DELETE /api/projects/{id}/notes/{note_id}
                   POST       /api/projects/{id}/notes/{note_id}/move
                   GET        /api/projects/{id}/filter | /search | /outline
    - health.py:   GET        /health

Routes stay thin: parse the request, call a service, shape the response.
"""
