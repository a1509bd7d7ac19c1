# File: catalogsync/services/product_service.py

import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from catalogsync.core.exceptions import (
    DuplicateEntityException,
    EntityNotFoundException,
    ValidationException,
)
from catalogsync.db.models.enums import ProductStatus
from catalogsync.db.models.product import Image, Product, ProductCollection, ProductOption
from catalogsync.repositories.product_repository import (
    ProductCollectionRepository,
    ProductRepository,
    ProductTagRepository,
    ProductTypeRepository,
)
from catalogsync.schemas.batch_job import ListConfig
from catalogsync.services.base_service import BaseService
from catalogsync.services.shipping_profile_service import ShippingProfileService

logger = logging.getLogger(__name__)

# Relations loaded when listing products for an export
DEFAULT_PRODUCT_RELATIONS = (
    "variants",
    "variants.prices",
    "variants.prices.region",
    "variants.options",
    "options",
    "images",
    "tags",
    "type",
    "collection",
    "profile",
)

# Keys of product data handled by the service instead of plain columns
RELATION_KEYS = ("tags", "type", "collection", "options", "images", "profile", "variants")


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


class ProductService(BaseService[Product]):
    """
    Service layer for managing Product entities.

    Handles the product side of imports (create/update with tags, type,
    collection, options and images) and the listings exports page through.
    """

    def __init__(
        self,
        session: Session,
        repository: Optional[ProductRepository] = None,
        shipping_profile_service: Optional[ShippingProfileService] = None,
    ):
        """
        Initialize the product service.

        Args:
            session: Database session
            repository: Optional product repository
            shipping_profile_service: Service used to find the default shipping profile
        """
        super().__init__(session, repository=repository or ProductRepository(session))
        self.shipping_profile_service = shipping_profile_service or ShippingProfileService(session)
        self.tag_repository = ProductTagRepository(session)
        self.type_repository = ProductTypeRepository(session)
        self.collection_repository = ProductCollectionRepository(session)

    def retrieve(self, product_id: str) -> Product:
        return self.get_entity_or_404(product_id)

    def retrieve_by_handle(self, handle: str, relations: Optional[List[str]] = None) -> Product:
        """
        Get a product by handle.

        Raises:
            EntityNotFoundException: If no product has this handle
        """
        product = self.repository.find_by_handle(handle, relations=relations)
        if not product:
            raise EntityNotFoundException("Product", handle)
        return product

    def list(
        self,
        filterable_fields: Optional[Dict[str, Any]] = None,
        config: Union[ListConfig, Dict[str, Any], None] = None,
    ) -> List[Product]:
        """
        List products.

        Args:
            filterable_fields: Filters, see ProductRepository.list_products
            config: Listing configuration (skip, take, order, select, relations)

        Returns:
            One page of products
        """
        list_config = self._list_config(config)
        return self.repository.list_products(
            filterable_fields=filterable_fields,
            skip=list_config.skip,
            take=list_config.take,
            order=list_config.order,
            relations=list_config.relations,
            select_fields=list_config.select,
        )

    def list_and_count(
        self,
        filterable_fields: Optional[Dict[str, Any]] = None,
        config: Union[ListConfig, Dict[str, Any], None] = None,
    ) -> Tuple[List[Product], int]:
        """
        List one page of products and count all products matching the filters.

        Returns:
            Tuple of (products, total count)
        """
        products = self.list(filterable_fields, config)
        return products, self.repository.count_products(filterable_fields)

    def create(self, data: Dict[str, Any]) -> Product:
        """
        Create a product.

        Args:
            data: Product columns plus optional tags ([{value}]), type ({value}),
                collection ({title, handle}), profile ({name, type}), options ([{title}])
                and images ([url])

        Returns:
            The created product

        Raises:
            ValidationException: If neither a handle nor a title is given
            DuplicateEntityException: If the handle is already in use
        """
        data = dict(data)
        data.pop("id", None)
        relations = {key: data.pop(key, None) for key in RELATION_KEYS}

        handle = data.get("handle") or (slugify(data["title"]) if data.get("title") else None)
        if not handle:
            raise ValidationException(
                "Product handle or title is required", {"handle": ["Missing handle"]}
            )
        data["handle"] = handle
        self._validate_status(data.get("status"))

        with self.transaction():
            if self.repository.find_by_handle(handle):
                raise DuplicateEntityException(
                    f"Product with handle {handle} already exists", {"handle": handle}
                )

            self._apply_profile(data, relations["profile"])
            if not data.get("profile_id"):
                profile = self.shipping_profile_service.retrieve_default()
                data["profile_id"] = profile.id if profile else None

            images = relations["images"] or []
            if images and not data.get("thumbnail"):
                data["thumbnail"] = images[0]

            product = self.repository.create(data)
            self._apply_tags_type_collection(product, relations)

            for rank, option in enumerate(relations["options"] or []):
                product.options.append(ProductOption(title=option["title"], rank=rank))

            for rank, url in enumerate(images):
                product.images.append(Image(url=url, rank=rank))

            self.session.flush()
            self._log_operation("create", "Product", product.id, {"handle": handle})
            return product

    def update(self, product_id: str, data: Dict[str, Any]) -> Product:
        """
        Update a product.

        Only the keys present in data are changed. Options missing from the
        product are added; existing options are kept since variants point
        at them. A given image list replaces the current images.

        Args:
            product_id: Product ID
            data: Same shape as for create

        Returns:
            The updated product

        Raises:
            EntityNotFoundException: If the product does not exist
            DuplicateEntityException: If the new handle is already in use
        """
        data = dict(data)
        data.pop("id", None)
        relations = {key: data.pop(key, None) for key in RELATION_KEYS}
        self._validate_status(data.get("status"))

        with self.transaction():
            product = self.retrieve(product_id)

            new_handle = data.get("handle")
            if new_handle and new_handle != product.handle:
                other = self.repository.find_by_handle(new_handle)
                if other and other.id != product.id:
                    raise DuplicateEntityException(
                        f"Product with handle {new_handle} already exists", {"handle": new_handle}
                    )

            self._apply_profile(data, relations["profile"])
            self._apply_tags_type_collection(product, relations)

            if relations["options"] is not None:
                existing_titles = {option.title for option in product.options}
                rank = len(product.options)
                for option in relations["options"]:
                    if option["title"] not in existing_titles:
                        product.options.append(ProductOption(title=option["title"], rank=rank))
                        existing_titles.add(option["title"])
                        rank += 1

            if relations["images"] is not None:
                product.images = [
                    Image(url=url, rank=rank) for rank, url in enumerate(relations["images"])
                ]

            self.repository.update(product.id, data)
            self._log_operation("update", "Product", product.id, {"fields": sorted(data)})
            return product

    def _apply_tags_type_collection(self, product: Product, relations: Dict[str, Any]) -> None:
        if relations["tags"] is not None:
            product.tags = self.tag_repository.upsert_tags(relations["tags"])

        type_data = relations["type"]
        if type_data is not None:
            value = type_data.get("value") if isinstance(type_data, dict) else type_data
            product.type = self.type_repository.upsert_type(value) if value else None

        if relations["collection"] is not None:
            product.collection = self._resolve_collection(relations["collection"])

    def _apply_profile(self, data: Dict[str, Any], profile_data: Optional[Dict[str, Any]]) -> None:
        """
        Point data at the shipping profile named by profile_data ({name, type}).

        A named profile that does not exist leaves the profile id as it is.
        """
        if not profile_data:
            return

        name = profile_data.get("name")
        profile_type = profile_data.get("type")
        if not name and not profile_type:
            return

        profile = self.shipping_profile_service.retrieve_by_name(name, profile_type)
        if profile is None:
            logger.warning(
                f"Shipping profile (name={name}, type={profile_type}) not found, "
                f"keeping profile {data.get('profile_id')}"
            )
            return

        data["profile_id"] = profile.id

    def _resolve_collection(self, collection_data: Dict[str, Any]) -> Optional[ProductCollection]:
        """Find the collection by handle (or title), creating it if needed."""
        handle = collection_data.get("handle")
        title = collection_data.get("title")
        if not handle and not title:
            return None

        collection = None
        if handle:
            collection = self.collection_repository.find_by_handle(handle)
        elif title:
            collection = self.collection_repository.find_one_by(title=title)

        if collection is None:
            collection = self.collection_repository.create(
                {"title": title or handle, "handle": handle or slugify(title)}
            )
            logger.debug(f"Created product collection {collection.handle}")

        return collection

    @staticmethod
    def _validate_status(status: Optional[str]) -> None:
        valid = [s.value for s in ProductStatus]
        if status is not None and status not in valid:
            raise ValidationException(
                f"Invalid product status '{status}'", {"status": [f"Must be one of {valid}"]}
            )

    @staticmethod
    def _list_config(config: Union[ListConfig, Dict[str, Any], None]) -> ListConfig:
        if config is None:
            return ListConfig(relations=list(DEFAULT_PRODUCT_RELATIONS))
        if isinstance(config, ListConfig):
            return config
        return ListConfig(**config)
