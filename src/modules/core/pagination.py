"""Pagination styles used by the API."""

from __future__ import annotations

from collections import OrderedDict

from rest_framework.pagination import LimitOffsetPagination, PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """``?page=N&page_size=M`` with a hard ceiling of 100 rows."""

    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100


class LimitOffsetResultsPagination(LimitOffsetPagination):
    """``?limit=&offset=`` pagination for admin grids.

    The response carries ``pagination.hasMore`` so the back-office can render
    infinite scroll without computing pages itself.
    """

    default_limit = 50
    max_limit = 100

    def get_paginated_response(self, data) -> Response:
        return Response(
            OrderedDict(
                [
                    ("results", data),
                    (
                        "pagination",
                        {
                            "total": self.count,
                            "limit": self.limit,
                            "offset": self.offset,
                            "hasMore": self.offset + self.limit < self.count,
                        },
                    ),
                ]
            )
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "results": schema,
                "pagination": {
                    "type": "object",
                    "properties": {
                        "total": {"type": "integer"},
                        "limit": {"type": "integer"},
                        "offset": {"type": "integer"},
                        "hasMore": {"type": "boolean"},
                    },
                },
            },
        }
