"""
Core app views — **Thin Views**.

Each view delegates all business logic to the corresponding service in
``core.services``.  Views are responsible only for:

1. Extracting and validating query parameters from the request.
2. Calling the service with the authenticated user and parameters.
3. Serialising the result and returning an HTTP ``Response``.

No model imports, no aggregation logic, no cross-app queries.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    OpenApiResponse,
    extend_schema,
)

from cases.serializers import CaseFilterSerializer

from .serializers import (
    CaseAnalyticsSerializer,
    DashboardStatsSerializer,
    SystemConstantsSerializer,
)
from .services import (
    CaseAnalyticsService,
    DashboardAggregationService,
    SystemConstantsService,
)


class DashboardStatsView(APIView):
    """
    **GET /api/core/dashboard/**

    Return headline counters for the authenticated user's visible cases.

    **Authentication**: Required (``IsAuthenticated``).
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Dashboard statistics",
        description="Counters over the cases visible to the requesting user.",
        responses={200: OpenApiResponse(response=DashboardStatsSerializer, description="Dashboard stats.")},
        tags=["Dashboard"],
    )
    def get(self, request: Request) -> Response:
        service = DashboardAggregationService(user=request.user)
        serializer = DashboardStatsSerializer(service.get_stats())
        return Response(serializer.data, status=status.HTTP_200_OK)


class CaseAnalyticsView(APIView):
    """
    **GET /api/core/analytics/**

    Breakdown by status, priority and type, resolution and high-priority
    rates, and the monthly creation trend.  Accepts the same query
    parameters as the case list.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Case analytics",
        parameters=[CaseFilterSerializer],
        responses={
            200: OpenApiResponse(response=CaseAnalyticsSerializer, description="Analytics."),
            400: OpenApiResponse(description="Invalid filter value."),
        },
        tags=["Dashboard"],
    )
    def get(self, request: Request) -> Response:
        filter_serializer = CaseFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        service = CaseAnalyticsService(user=request.user)
        data = service.get_analytics(filter_serializer.to_criteria())
        return Response(CaseAnalyticsSerializer(data).data, status=status.HTTP_200_OK)


class SystemConstantsView(APIView):
    """
    **GET /api/core/constants/**

    Return all system-wide choice enumerations.  Public.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="System constants",
        description=(
            "Return all system-wide choice enumerations so the frontend can "
            "build dropdowns, filters, and labels."
        ),
        responses={200: OpenApiResponse(response=SystemConstantsSerializer, description="System constants.")},
        tags=["System"],
    )
    def get(self, request: Request) -> Response:
        data = SystemConstantsService.get_constants()
        serializer = SystemConstantsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)
