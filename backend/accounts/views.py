"""
Accounts app views.

All views follow the **Thin View** pattern: validate input via
serializers, delegate to the service layer, and return the result
wrapped in a DRF ``Response``.  **No business logic** resides here.

View Map
--------
- ``LoginView``          — POST /auth/login/
- ``MeView``             — GET / PATCH /me/
- ``UserViewSet``        — /users/  (list, retrieve, role,
                           activate, deactivate)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import User
from .serializers import (
    AssignRoleSerializer,
    CustomTokenObtainPairSerializer,
    MeUpdateSerializer,
    UserDetailSerializer,
    UserFilterSerializer,
    UserListSerializer,
)
from .services import CurrentUserService, UserManagementService


# ═══════════════════════════════════════════════════════════════════
#  Authentication Views
# ═══════════════════════════════════════════════════════════════════


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Authenticates with ``identifier`` (username or
    email) plus password and returns a JWT pair with the user payload.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Log in",
        request=CustomTokenObtainPairSerializer,
        responses={
            200: OpenApiResponse(description="Access/refresh tokens and the user."),
            400: OpenApiResponse(description="Invalid credentials."),
        },
        tags=["Auth"],
    )
    def post(self, request: Request) -> Response:
        serializer = CustomTokenObtainPairSerializer(
            data=request.data,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)

        payload = dict(serializer.validated_data)
        payload["user"] = UserDetailSerializer(serializer.user).data
        return Response(payload, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Current User ("Me") View
# ═══════════════════════════════════════════════════════════════════


class MeView(APIView):
    """
    GET   /api/accounts/me/ → Retrieve current user profile.
    PATCH /api/accounts/me/ → Update own ``full_name`` / ``email``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user",
        responses={200: UserDetailSerializer},
        tags=["Auth"],
    )
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Update current user",
        request=MeUpdateSerializer,
        responses={200: UserDetailSerializer},
        tags=["Auth"],
    )
    def patch(self, request: Request) -> Response:
        serializer = MeUpdateSerializer(
            instance=request.user,
            data=request.data,
            partial=True,
        )
        serializer.is_valid(raise_exception=True)
        user = CurrentUserService.update_profile(
            request.user, serializer.validated_data,
        )
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  User Management ViewSet
# ═══════════════════════════════════════════════════════════════════


class UserViewSet(viewsets.ViewSet):
    """
    /api/accounts/users/

    Administrative user management.  Authorization is enforced by
    ``UserManagementService`` (administrators only).
    """

    permission_classes = [IsAuthenticated]
    queryset = User.objects.none()

    @extend_schema(
        summary="List users",
        parameters=[UserFilterSerializer],
        responses={200: UserListSerializer(many=True)},
        tags=["Users"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = UserFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        users = UserManagementService.list_users(
            request.user, **filter_serializer.validated_data,
        )
        return Response(UserListSerializer(users, many=True).data)

    @extend_schema(
        summary="Retrieve user",
        responses={200: UserDetailSerializer},
        tags=["Users"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        user = UserManagementService.get_user(int(pk), request.user)
        return Response(UserDetailSerializer(user).data)

    @action(detail=True, methods=["patch"], url_path="role")
    @extend_schema(
        summary="Change a user's role",
        request=AssignRoleSerializer,
        responses={
            200: UserDetailSerializer,
            400: OpenApiResponse(description="Unknown role or self-demotion."),
            403: OpenApiResponse(description="Administrators only."),
        },
        tags=["Users"],
    )
    def role(self, request: Request, pk: str = None) -> Response:
        serializer = AssignRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserManagementService.assign_role(
            user_id=int(pk),
            role=serializer.validated_data["role"],
            performed_by=request.user,
        )
        return Response(UserDetailSerializer(user).data)

    @action(detail=True, methods=["post"], url_path="activate")
    @extend_schema(
        summary="Activate user",
        request=None,
        responses={200: UserDetailSerializer},
        tags=["Users"],
    )
    def activate(self, request: Request, pk: str = None) -> Response:
        user = UserManagementService.activate_user(int(pk), performed_by=request.user)
        return Response(UserDetailSerializer(user).data)

    @action(detail=True, methods=["post"], url_path="deactivate")
    @extend_schema(
        summary="Deactivate user",
        request=None,
        responses={
            200: UserDetailSerializer,
            400: OpenApiResponse(description="Self-deactivation."),
        },
        tags=["Users"],
    )
    def deactivate(self, request: Request, pk: str = None) -> Response:
        user = UserManagementService.deactivate_user(int(pk), performed_by=request.user)
        return Response(UserDetailSerializer(user).data)
