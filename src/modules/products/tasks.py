"""Background tasks owned by the catalog."""

from celery import shared_task

from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import ProductService


@shared_task(name="products.release_expired_reservations")
def release_expired_reservations() -> int:
    """Release stock holds whose checkout window has closed."""
    return ProductService(repository=ProductDjangoRepository()).release_expired_reservations()
