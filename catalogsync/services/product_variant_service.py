# File: catalogsync/services/product_variant_service.py

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from catalogsync.core.exceptions import (
    DuplicateEntityException,
    EntityNotFoundException,
    InvalidDataException,
)
from catalogsync.db.models.product import (
    MoneyAmount,
    Product,
    ProductOptionValue,
    ProductVariant,
)
from catalogsync.repositories.product_repository import ProductRepository
from catalogsync.repositories.product_variant_repository import ProductVariantRepository
from catalogsync.repositories.region_repository import RegionRepository
from catalogsync.services.base_service import BaseService

logger = logging.getLogger(__name__)

# Keys of variant data handled by the service instead of plain columns
RELATION_KEYS = ("prices", "options", "product", "product.handle", "product.options")


class ProductVariantService(BaseService[ProductVariant]):
    """
    Service for product variants, their option values and prices.

    Prices are either region prices ({amount, region_id}) or plain
    currency prices ({amount, currency_code}).
    """

    def __init__(self, session: Session, repository: Optional[ProductVariantRepository] = None):
        super().__init__(session, repository=repository or ProductVariantRepository(session))
        self.product_repository = ProductRepository(session)
        self.region_repository = RegionRepository(session)

    def retrieve(self, variant_id: str) -> ProductVariant:
        variant = self.repository.get_with_relations(variant_id)
        if not variant:
            raise EntityNotFoundException("ProductVariant", variant_id)
        return variant

    def create(self, product: Union[Product, str], data: Dict[str, Any]) -> ProductVariant:
        """
        Create a variant of a product.

        Args:
            product: Product or product ID
            data: Variant columns plus prices and options ([{value, option_id}])

        Returns:
            The created variant

        Raises:
            InvalidDataException: If an option value has no option id or
                the option values do not cover the product's options
            DuplicateEntityException: If the SKU is already in use
        """
        data = dict(data)
        data.pop("id", None)
        relations = {key: data.pop(key, None) for key in RELATION_KEYS}

        with self.transaction():
            if isinstance(product, str):
                product = self.product_repository.get_by_id(product)
                if product is None:
                    raise EntityNotFoundException("Product", relations["product.handle"])

            options = relations["options"] or []
            self._validate_options(product, options)

            sku = data.get("sku")
            if sku and self.repository.find_by_sku(sku):
                raise DuplicateEntityException(
                    f"Product variant with sku {sku} already exists", {"sku": sku}
                )

            if not data.get("title"):
                data["title"] = " / ".join(str(o["value"]) for o in options) or product.title

            data["product_id"] = product.id
            data["variant_rank"] = len(product.variants)

            variant = self.repository.create(data)

            for option in options:
                variant.options.append(
                    ProductOptionValue(value=option["value"], option_id=option["option_id"])
                )

            for price in relations["prices"] or []:
                variant.prices.append(self._build_price(price))

            product.variants.append(variant)
            self.session.flush()
            self._log_operation("create", "ProductVariant", variant.id, {"sku": sku})
            return variant

    def update(self, variant_id: str, data: Dict[str, Any]) -> ProductVariant:
        """
        Update a variant.

        Given prices are upserted (by region, or by currency for plain
        prices) and given option values are upserted by option id; prices
        and option values not mentioned are kept.

        Args:
            variant_id: Variant ID
            data: Same shape as for create

        Returns:
            The updated variant
        """
        data = dict(data)
        data.pop("id", None)
        relations = {key: data.pop(key, None) for key in RELATION_KEYS}

        with self.transaction():
            variant = self.retrieve(variant_id)

            sku = data.get("sku")
            if sku and sku != variant.sku:
                other = self.repository.find_by_sku(sku)
                if other and other.id != variant.id:
                    raise DuplicateEntityException(
                        f"Product variant with sku {sku} already exists", {"sku": sku}
                    )

            for option in relations["options"] or []:
                if not option.get("option_id"):
                    raise InvalidDataException(
                        f"Option '{option.get('_title')}' does not exist",
                        {"variant_id": variant_id},
                    )
                existing = next(
                    (ov for ov in variant.options if ov.option_id == option["option_id"]), None
                )
                if existing:
                    existing.value = option["value"]
                else:
                    variant.options.append(
                        ProductOptionValue(value=option["value"], option_id=option["option_id"])
                    )

            for price in relations["prices"] or []:
                self._upsert_price(variant, price)

            self.repository.update(variant.id, data)
            self._log_operation("update", "ProductVariant", variant.id, {"fields": sorted(data)})
            return variant

    def _validate_options(self, product: Product, options: List[Dict[str, Any]]) -> None:
        for option in options:
            if not option.get("option_id"):
                raise InvalidDataException(
                    f"Option '{option.get('_title')}' does not exist on product {product.handle}",
                    {"product_id": product.id},
                )

        if len(options) != len(product.options):
            raise InvalidDataException(
                f"Product {product.handle} has {len(product.options)} options but the variant "
                f"has {len(options)} option values",
                {"product_id": product.id},
            )

    def _build_price(self, price: Dict[str, Any]) -> MoneyAmount:
        amount = self._amount(price)

        if price.get("region_id"):
            region = self.region_repository.get_by_id(price["region_id"])
            if region is None:
                raise InvalidDataException(
                    f"Region {price['region_id']} does not exist",
                    {"region_id": price["region_id"]},
                )
            return MoneyAmount(
                amount=amount, region_id=region.id, currency_code=region.currency_code
            )

        if not price.get("currency_code"):
            raise InvalidDataException("A price needs a region or a currency code", {"price": price})

        return MoneyAmount(amount=amount, currency_code=str(price["currency_code"]).lower())

    def _upsert_price(self, variant: ProductVariant, price: Dict[str, Any]) -> None:
        amount = self._amount(price)

        if price.get("region_id"):
            existing = next((p for p in variant.prices if p.region_id == price["region_id"]), None)
        else:
            currency_code = str(price.get("currency_code") or "").lower()
            existing = next(
                (
                    p
                    for p in variant.prices
                    if p.region_id is None and (p.currency_code or "").lower() == currency_code
                ),
                None,
            )

        if existing:
            existing.amount = amount
        else:
            variant.prices.append(self._build_price(price))

    @staticmethod
    def _amount(price: Dict[str, Any]) -> int:
        amount = price.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidDataException(
                f"Price amount must be an integer, got {amount!r}", {"price": price}
            )
        return amount
