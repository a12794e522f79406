"""
Cases app URL configuration.

All routes are registered under the ``/api/`` prefix.

Route Hierarchy
---------------
  /api/cases/                              → list / create
  /api/cases/{id}/                         → retrieve / partial_update / destroy

  ── Sub-resource @actions ───────────────────────────────────────
  GET  /api/cases/{id}/activity/
  GET  /api/cases/{id}/export/             → text dossier attachment
  GET  /api/cases/export-csv/              → CSV of visible cases

  ── Nested routes (drf-nested-routers) ──────────────────────────
  GET  /api/cases/{case_pk}/notes/
  POST /api/cases/{case_pk}/notes/

``router`` is reused by ``documents.urls`` to nest the document routes
under the same case prefix.
"""

from rest_framework.routers import DefaultRouter
from rest_framework_nested import routers as nested_routers

from .views import CaseNoteViewSet, CaseViewSet

router = DefaultRouter()
router.register(
    prefix=r"cases",
    viewset=CaseViewSet,
    basename="case",
)

notes_router = nested_routers.NestedDefaultRouter(
    parent_router=router,
    parent_prefix=r"cases",
    lookup="case",
)
notes_router.register(
    prefix=r"notes",
    viewset=CaseNoteViewSet,
    basename="case-note",
)

urlpatterns = router.urls + notes_router.urls
