from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class BackOfficePagination(PageNumberPagination):
    """
    ?page=&per_page= with the envelope the back-office frontend expects:
    {data, current_page, last_page, per_page, total}
    """
    page_size = 20
    page_size_query_param = "per_page"
    max_page_size = 100

    def get_paginated_response(self, data):
        paginator = self.page.paginator
        return Response({
            "data": data,
            "current_page": self.page.number,
            "last_page": paginator.num_pages,
            "per_page": paginator.per_page,
            "total": paginator.count,
        })

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "data": schema,
                "current_page": {"type": "integer"},
                "last_page": {"type": "integer"},
                "per_page": {"type": "integer"},
                "total": {"type": "integer"},
            },
        }


class SmallPagination(BackOfficePagination):
    page_size = 10


class WhitelistPagination(BackOfficePagination):
    """per_page outside `page_sizes` falls back to the default page size."""
    page_size = 10
    page_sizes = (10, 20, 30, 40, 50)

    def get_page_size(self, request):
        raw = request.query_params.get(self.page_size_query_param)
        try:
            size = int(raw)
        except (TypeError, ValueError):
            return self.page_size
        return size if size in self.page_sizes else self.page_size
