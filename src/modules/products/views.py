"""Catalog API views.

Exposes ``ProductService`` and ``ReviewService`` through DRF ViewSets.
Domain errors propagate to the project exception handler.
"""

from __future__ import annotations

from django.conf import settings
from django.core.cache import cache
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.accounts.repositories.django_repository import CustomerDjangoRepository
from modules.accounts.services import AccountService
from modules.core.permissions import is_admin
from modules.products.constants import PRODUCT_LIST_CACHE_KEY
from modules.products.dtos import (
    CreateProductDTO,
    CreateReviewDTO,
    ProductQueryDTO,
    StockRequestDTO,
    StockUpdateDTO,
    UpdateProductDTO,
)
from modules.products.repositories.django_repository import (
    ProductDjangoRepository,
    ReviewDjangoRepository,
)
from modules.products.serializers import (
    ProductSerializer,
    ReviewSerializer,
    StockReservationSerializer,
)
from modules.products.services import ProductService, ReviewService

_PRODUCT_FIELDS = (
    "sku",
    "name",
    "price",
    "description",
    "stock_quantity",
    "collection",
    "image_url",
    "weight",
    "dimensions",
)
_QUERY_PARAMS = {
    "search": "search",
    "min_price": "min_price",
    "minPrice": "min_price",
    "max_price": "max_price",
    "maxPrice": "max_price",
    "collection": "collection",
    "sort_by": "sort_by",
    "sortBy": "sort_by",
    "sort_order": "sort_order",
    "sortOrder": "sort_order",
    "limit": "limit",
    "offset": "offset",
}


class ProductViewSet(GenericViewSet):
    """Catalog endpoints; reads are public, writes are staff only."""

    serializer_class = ProductSerializer
    pagination_class = None

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        repository = ProductDjangoRepository()
        self._service = ProductService(repository=repository)
        self._reviews = ReviewService(
            review_repository=ReviewDjangoRepository(),
            product_repository=repository,
        )

    def get_permissions(self):
        if self.action in ("list", "retrieve", "reviews_stats", "check_stock"):
            return [AllowAny()]
        if self.action == "reviews":
            if self.request.method == "GET":
                return [AllowAny()]
            return [IsAuthenticated()]
        if self.action in ("reserve", "release"):
            return [AllowAny()]
        return [IsAdminUser()]

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/products/

        The bare storefront listing is cached for
        ``PRODUCT_LIST_CACHE_TIMEOUT`` seconds and dropped on catalog writes.
        """
        params = {
            target: request.query_params[source]
            for source, target in _QUERY_PARAMS.items()
            if request.query_params.get(source) not in (None, "")
        }
        query = ProductQueryDTO(
            **params,
            include_inactive=is_admin(request.user)
            and request.query_params.get("include_inactive") in ("1", "true"),
        )

        if query.is_default:
            cached = cache.get(PRODUCT_LIST_CACHE_KEY)
            if cached is not None:
                return Response(cached)

        result = self._service.list_products(query)
        payload = {
            "products": ProductSerializer(result["items"], many=True).data,
            "pagination": {
                "total": result["total"],
                "limit": result["limit"],
                "offset": result["offset"],
            },
        }
        if query.is_default:
            cache.set(PRODUCT_LIST_CACHE_KEY, payload, settings.PRODUCT_LIST_CACHE_TIMEOUT)
        return Response(payload)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/products/{pk}/"""
        product = self._service.get_product(str(pk))
        return Response(ProductSerializer(product).data)

    # ------------------------------------------------------------------
    # Create / Update / Destroy
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/products/"""
        data = {f: request.data[f] for f in _PRODUCT_FIELDS if request.data.get(f) is not None}
        dto = CreateProductDTO(**{"sku": "", "name": "", "price": 0, **data})
        product = self._service.create_product(dto)
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT/PATCH /api/v1/products/{pk}/"""
        fields = UpdateProductDTO.model_fields.keys()
        dto = UpdateProductDTO(
            **{k: v for k, v in request.data.items() if k in fields and v is not None}
        )
        product = self._service.update_product(str(pk), dto)
        return Response(ProductSerializer(product).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/products/{pk}/"""
        self._service.delete_product(str(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    @action(detail=True, methods=["put", "patch"], url_path="stock")
    def update_stock(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/products/{pk}/stock/

        Accepts ``{"operation": "set|increase|decrease", "quantity": N}``;
        ``stock`` and ``stock_quantity`` are accepted as aliases of ``quantity``.
        """
        data = request.data
        quantity = next(
            (data[key] for key in ("quantity", "stock", "stock_quantity") if data.get(key) is not None),
            None,
        )
        dto = StockUpdateDTO(operation=data.get("operation") or "set", quantity=quantity)
        product = self._service.update_stock(str(pk), dto)
        return Response(ProductSerializer(product).data)

    @action(detail=False, methods=["post"], url_path="check-stock")
    def check_stock(self, request: Request) -> Response:
        """POST /api/v1/products/check-stock/"""
        dto = StockRequestDTO(
            items=request.data.get("items") or [],
            session_id=request.data.get("session_id"),
        )
        return Response(self._service.check_stock(dto))

    @action(detail=False, methods=["post"])
    def reserve(self, request: Request) -> Response:
        """POST /api/v1/products/reserve/"""
        dto = StockRequestDTO(
            items=request.data.get("items") or [],
            session_id=request.data.get("session_id"),
        )
        reservation = self._service.reserve_stock(dto)
        return Response(
            StockReservationSerializer(reservation).data, status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=["post"])
    def release(self, request: Request) -> Response:
        """POST /api/v1/products/release/"""
        released = self._service.release_reservation(str(request.data.get("session_id", "")))
        return Response({"released": released})

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get", "post"])
    def reviews(self, request: Request, pk: str | None = None) -> Response:
        """GET/POST /api/v1/products/{pk}/reviews/"""
        if request.method == "GET":
            reviews = self._reviews.list_reviews(str(pk))
            return Response({"reviews": ReviewSerializer(reviews, many=True).data})

        customer = AccountService(CustomerDjangoRepository()).get_customer_for_user(request.user)
        dto = CreateReviewDTO(
            rating=request.data.get("rating"),
            title=request.data.get("title", ""),
            comment=request.data.get("comment", ""),
        )
        review = self._reviews.create_review(str(pk), customer, dto)
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="reviews/stats")
    def reviews_stats(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/products/{pk}/reviews/stats/"""
        return Response({"stats": self._reviews.rating_stats(str(pk))})


class ReviewViewSet(GenericViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = ReviewSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._reviews = ReviewService(
            review_repository=ReviewDjangoRepository(),
            product_repository=ProductDjangoRepository(),
        )

    @action(detail=True, methods=["post"])
    def helpful(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/reviews/{pk}/helpful/"""
        review = self._reviews.mark_helpful(str(pk), request.user.pk)
        return Response(
            {"message": "Review marked as helpful", "helpful_count": review.helpful_count}
        )
