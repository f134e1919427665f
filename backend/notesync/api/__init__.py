"""NoteSync REST API package.

Sub-modules expose FastAPI routers for each domain:
- notes: device-scoped note CRUD
- sync: bulk reconciliation of a device's notes
- share: public expiring note shares
- stats: server-wide counters
"""
