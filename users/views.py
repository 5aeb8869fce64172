# users/views.py
from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.pagination import BackOfficePagination
from common.permissions import IsAdmin, IsBackOfficeUser, PermissionRequired, read_write
from common.roles import READ_USERS, WRITE_USERS, UserRole

from .serializers import BulkRoleSerializer, UserBrandsSerializer, UserIdsSerializer, UserSerializer
from .services import (
    ImpersonationError,
    bulk_delete,
    bulk_set_role,
    start_impersonation,
    stop_impersonation,
    sync_brands,
)

User = get_user_model()


def unprocessable(message):
    return Response({"message": message}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)


class UserViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.UpdateModelMixin,
                  mixins.DestroyModelMixin,
                  viewsets.GenericViewSet):
    """
    GET    /api/v1/users?search=&role=&page=&per_page=
    GET    /api/v1/users/<id>
    PUT    /api/v1/users/<id>              role syncs auth groups
    DELETE /api/v1/users/<id>              not yourself
    POST   /api/v1/users/bulk-delete       {"user_ids": [...]}
    POST   /api/v1/users/bulk-role         {"user_ids": [...], "role": "manager"}
    PUT    /api/v1/users/<id>/brands       {"brand_ids": [...]}
    POST   /api/v1/users/<id>/impersonate  admins only
    """
    serializer_class = UserSerializer
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_USERS, WRITE_USERS)
    pagination_class = BackOfficePagination
    filter_backends = [filters.SearchFilter]
    search_fields = ["first_name", "last_name", "email", "username"]
    lookup_value_regex = r"\d+"

    def get_permissions(self):
        if self.action == "impersonate":
            return [IsAdmin()]
        return super().get_permissions()

    def get_queryset(self):
        qs = User.objects.prefetch_related("brand_memberships__brand").order_by("-date_joined", "-id")
        role = self.request.query_params.get("role")
        if role in UserRole.values:
            match = Q(groups__name=role)
            if role == UserRole.ADMIN:
                match |= Q(is_superuser=True)
            qs = qs.filter(match).distinct()
        return qs

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        if user.pk == request.user.pk:
            return Response({"message": "Cannot delete yourself"}, status=status.HTTP_403_FORBIDDEN)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["post"], url_path="bulk-delete")
    def bulk_destroy(self, request):
        ser = UserIdsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        deleted = bulk_delete(ser.validated_data["user_ids"], request.user)
        return Response({"message": "Users deleted successfully", "deleted": deleted})

    @action(detail=False, methods=["post"], url_path="bulk-role")
    def bulk_update_role(self, request):
        ser = BulkRoleSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        updated = bulk_set_role(ser.validated_data["user_ids"], ser.validated_data["role"])
        return Response({"message": "User roles updated successfully", "updated": updated})

    @action(detail=True, methods=["put"], url_path="brands")
    def brands(self, request, pk=None):
        user = self.get_object()
        ser = UserBrandsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        sync_brands(user, ser.validated_data["brand_ids"])
        user = self.get_queryset().get(pk=user.pk)
        return Response(self.get_serializer(user).data)

    @action(detail=True, methods=["post"], url_path="impersonate")
    def impersonate(self, request, pk=None):
        target = self.get_object()
        try:
            tokens = start_impersonation(request.user, target)
        except ImpersonationError as exc:
            return unprocessable(str(exc))
        return Response(tokens)


class StopImpersonatingView(APIView):
    """POST /api/v1/auth/stop-impersonating/ -> token pair for the original admin"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        try:
            tokens = stop_impersonation(request.auth)
        except ImpersonationError as exc:
            return unprocessable(str(exc))
        return Response(tokens)
