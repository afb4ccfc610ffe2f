# catalog_service/catalog.py

"""
Catalog Service: validates inbound product data, coordinates image storage with
the media store and record persistence with the storage gateway, and shapes the
products returned to API clients.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from fastapi import Depends, Request
from pydantic import ValidationError

from .db import StorageGateway, get_gateway
from .exceptions import MediaFailure, NotFound, StorageFailure, ValidationFailure
from .media import MediaStore, StagedImage, UploadedImage
from .models import Product
from .schemas import ProductCreate, ProductResponse

logger = logging.getLogger(__name__)


def _field_errors(error: ValidationError):
    fields = {}
    for err in error.errors():
        field = ".".join(str(part) for part in err["loc"]) or "body"
        # Drop pydantic's "Value error, " prefix from custom validator messages.
        fields.setdefault(field, err["msg"].replace("Value error, ", ""))
    return fields


class CatalogService:
    def __init__(
        self,
        gateway: StorageGateway,
        media: MediaStore,
        max_images: int = 4,
        purge_media_on_delete: bool = False,
    ):
        self.gateway = gateway
        self.media = media
        self.max_images = max_images
        self.purge_media_on_delete = purge_media_on_delete

    def _present(self, product: Product) -> ProductResponse:
        created_at = product.created_at
        if created_at is not None and created_at.tzinfo is None:
            # SQLite drops the offset; every stored timestamp is UTC.
            created_at = created_at.replace(tzinfo=timezone.utc)
        images = list(product.images or [])
        return ProductResponse(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            category=product.category,
            images=images,
            created_at=created_at,
            image_urls=[self.media.url_for(ref) for ref in images],
        )

    def list(self) -> List[ProductResponse]:
        """All products, newest first."""
        products = self.gateway.list_all("created_at", "desc")
        logger.info(f"Retrieved {len(products)} products.")
        return [self._present(p) for p in products]

    def get(self, product_id: str) -> ProductResponse:
        product = self.gateway.find_by_id(product_id)
        if product is None:
            logger.warning(f"Product with ID: {product_id} not found.")
            raise NotFound("Product not found")
        return self._present(product)

    def create(
        self,
        name: Optional[str],
        price,
        description: Optional[str],
        category: Optional[str],
        images: Sequence[UploadedImage] = (),
    ) -> ProductResponse:
        """
        Validate and store a new product with up to `max_images` images.

        Images are staged in upload order and only published once the record
        is stored; any failure before that discards what was staged.
        """
        submitted = {"name": name, "price": price, "description": description, "category": category}
        try:
            data = ProductCreate(**{k: v for k, v in submitted.items() if v is not None})
        except ValidationError as e:
            fields = _field_errors(e)
            logger.warning(f"Rejected product input: {fields}")
            raise ValidationFailure("Invalid product data.", fields=fields) from e

        if len(images) > self.max_images:
            logger.warning(f"Rejected product '{data.name}': {len(images)} images attached.")
            raise ValidationFailure(
                f"At most {self.max_images} images are allowed per product.",
                fields={"images": f"Received {len(images)} files."},
            )

        logger.info(f"Creating product: {data.name} with {len(images)} image(s)")
        staged: List[StagedImage] = []
        try:
            for upload in images:
                staged.append(self.media.stage(upload))

            product = Product(
                id=uuid.uuid4().hex,
                name=data.name,
                price=data.price,
                description=data.description,
                category=data.category,
                images=[s.reference for s in staged],
                created_at=datetime.now(timezone.utc),
            )
            product = self.gateway.insert(product)
        except Exception:
            for s in staged:
                self.media.discard(s)
            raise

        published: List[str] = []
        try:
            for s in staged:
                published.append(self.media.commit(s))
        except MediaFailure:
            logger.error(f"Publishing images of product {product.id} failed; removing the record.")
            self._undo_create(product.id, staged[len(published):], published)
            raise
        logger.info(f"Product '{product.name}' (ID: {product.id}) created successfully.")
        return self._present(product)

    def _undo_create(self, product_id: str, staged: Sequence[StagedImage], published: Sequence[str]) -> None:
        # Runs while a MediaFailure is propagating; cleanup errors are logged only.
        try:
            self.gateway.delete_by_id(product_id)
        except StorageFailure:
            logger.error(f"Product {product_id} could not be removed after a failed create.")
        for s in staged:
            self.media.discard(s)
        for reference in published:
            try:
                self.media.remove(reference)
            except MediaFailure:
                logger.warning(f"Image {reference} of product {product_id} left on disk.")

    def delete(self, product_id: str) -> None:
        """
        Remove a product record. Its image files stay on disk unless
        `purge_media_on_delete` is set.
        """
        product = self.gateway.find_by_id(product_id) if self.purge_media_on_delete else None
        removed = self.gateway.delete_by_id(product_id)
        if removed == 0:
            logger.warning(f"Product with ID: {product_id} not found for deletion.")
            raise NotFound("Product not found")

        if product is not None:
            for reference in product.images or []:
                try:
                    self.media.remove(reference)
                except MediaFailure:
                    # The record is already gone; a leftover file is only logged.
                    logger.warning(f"Image {reference} of product {product_id} left on disk.")
        logger.info(f"Product (ID: {product_id}) deleted successfully.")


def get_catalog(request: Request, gateway: StorageGateway = Depends(get_gateway)) -> CatalogService:
    """Dependency assembling a catalog service from the application's collaborators."""
    settings = request.app.state.settings
    return CatalogService(
        gateway,
        request.app.state.media,
        max_images=settings.max_images_per_product,
        purge_media_on_delete=settings.purge_media_on_delete,
    )
