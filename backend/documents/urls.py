"""
Documents app URL configuration.

Nested under the cases router (``drf-nested-routers``):

  GET    /api/cases/{case_pk}/documents/
  POST   /api/cases/{case_pk}/documents/
  DELETE /api/cases/{case_pk}/documents/{id}/
  GET    /api/cases/{case_pk}/documents/{id}/download/
"""

from rest_framework_nested import routers as nested_routers

from cases.urls import router as case_router

from .views import CaseDocumentViewSet

documents_router = nested_routers.NestedDefaultRouter(
    parent_router=case_router,
    parent_prefix=r"cases",
    lookup="case",
)
documents_router.register(
    prefix=r"documents",
    viewset=CaseDocumentViewSet,
    basename="case-document",
)

urlpatterns = documents_router.urls
