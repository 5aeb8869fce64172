# analytics/views.py
from rest_framework.response import Response
from rest_framework.views import APIView

from common.api_mixins import resolve_request_brand
from common.permissions import IsBackOfficeUser
from common.roles import is_admin

from . import dashboard


class DashboardView(APIView):
    """
    GET /api/v1/analytics/dashboard?range=7|30|90&table=top|gap&conv_sort=&conv_dir=&conv_page=

    Managers see their brand. Admins see their selected brand, or every brand
    when none is selected.
    """
    permission_classes = [IsBackOfficeUser]

    def get(self, request):
        days = dashboard.normalize_range(request.GET.get("range", dashboard.DEFAULT_RANGE))
        table = request.GET.get("table", "top")
        if table not in dashboard.TABLE_MODES:
            table = "top"
        try:
            conv_page = max(1, int(request.GET.get("conv_page", 1)))
        except (TypeError, ValueError):
            conv_page = 1

        brand = resolve_request_brand(request)
        payload = dashboard.build_dashboard(
            days=days,
            table=table,
            brand_id=brand.id if brand else None,
            has_scope=brand is not None or is_admin(request.user),
            conv_sort=request.GET.get("conv_sort", dashboard.DEFAULT_CONVERSION_SORT),
            conv_dir=request.GET.get("conv_dir", "desc"),
            conv_page=conv_page,
        )
        return Response(payload)
