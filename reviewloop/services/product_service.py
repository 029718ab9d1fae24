"""Product configuration: catalog sync and review campaign settings"""
import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from reviewloop.core.exceptions import NotFoundError, PreconditionFailedError
from reviewloop.models.merchant import Merchant
from reviewloop.models.product_config import PRODUCT_STATUSES, ProductConfig
from reviewloop.models.review import Review
from reviewloop.services import platform_service
from reviewloop.services.reward_service import resolve_reward

logger = logging.getLogger(__name__)

UNTITLED_PRODUCT = "Untitled Product"


def _product_status(product: Dict[str, Any]) -> str:
    """Map platform visibility to our status; anything unrecognised is 'visible'"""
    visibility = product.get("visibility")
    if isinstance(visibility, str) and visibility.lower() in PRODUCT_STATUSES:
        return visibility.lower()
    return "visible"


def serialize_product_config(config: ProductConfig) -> Dict[str, Any]:
    return {
        "id": config.id,
        "platform_product_id": config.platform_product_id,
        "product_name": config.product_name,
        "status": config.status,
        "is_enabled": config.is_enabled,
        "review_type": config.review_type,
        "promo_code": config.promo_code,
        "promo_code_name": config.promo_code_name,
    }


def list_product_configs(merchant_id: int, db: Session) -> List[Dict[str, Any]]:
    configs = (
        db.query(ProductConfig)
        .filter(ProductConfig.merchant_id == merchant_id)
        .order_by(ProductConfig.product_name, ProductConfig.id)
        .all()
    )
    return [serialize_product_config(c) for c in configs]


def get_product_config(merchant_id: int, platform_product_id: str, db: Session) -> ProductConfig:
    config = (
        db.query(ProductConfig)
        .filter(
            ProductConfig.merchant_id == merchant_id,
            ProductConfig.platform_product_id == platform_product_id,
        )
        .first()
    )
    if not config:
        raise NotFoundError(f"Product {platform_product_id} not found")
    return config


def sync_products(merchant: Merchant, db: Session) -> Dict[str, int]:
    """Mirror the platform catalog into product configs.

    New products are inserted disabled, changed names/visibility are
    updated, and products gone from the catalog are deleted. A stale
    product that already has reviews is archived and disabled instead,
    so its reviews keep their product.

    Raises:
        PlatformAPIError: Catalog could not be fetched; nothing is changed
    """
    products = platform_service.list_products(merchant.company_id)
    existing = {
        c.platform_product_id: c
        for c in db.query(ProductConfig).filter(ProductConfig.merchant_id == merchant.id).all()
    }

    counts = {"inserted": 0, "updated": 0, "deleted": 0, "archived": 0}
    catalog_ids = set()

    for product in products:
        product_id = product.get("id")
        if not product_id:
            continue
        catalog_ids.add(product_id)
        name = product.get("title") or UNTITLED_PRODUCT
        status = _product_status(product)

        config = existing.get(product_id)
        if config is None:
            db.add(ProductConfig(
                merchant_id=merchant.id,
                platform_product_id=product_id,
                product_name=name,
                status=status,
            ))
            counts["inserted"] += 1
        elif config.product_name != name or config.status != status:
            config.product_name = name
            config.status = status
            counts["updated"] += 1

    for product_id, config in existing.items():
        if product_id in catalog_ids:
            continue
        has_reviews = db.query(Review.id).filter(Review.product_config_id == config.id).first() is not None
        if has_reviews:
            if config.status != "archived" or config.is_enabled:
                config.status = "archived"
                config.is_enabled = False
                counts["archived"] += 1
        else:
            db.delete(config)
            counts["deleted"] += 1

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Synced products for merchant {merchant.company_id}: {counts}")
    return counts


def update_product_config(
    merchant_id: int,
    platform_product_id: str,
    updates: Dict[str, Any],
    db: Session
) -> Dict[str, Any]:
    """Change a product's campaign settings.

    An enabled product must point at a promo code that resolves right now;
    the check runs whenever the result would be enabled.

    Raises:
        NotFoundError: Unknown product
        PreconditionFailedError: Enabling without a usable reward
    """
    config = get_product_config(merchant_id, platform_product_id, db)

    # Only the promo fields can be cleared
    updates = {k: v for k, v in updates.items() if v is not None or k in ("promo_code", "promo_code_name")}
    for field in ("promo_code", "promo_code_name"):
        if field in updates and isinstance(updates[field], str):
            updates[field] = updates[field].strip() or None

    is_enabled = updates.get("is_enabled", config.is_enabled)
    promo_code = updates["promo_code"] if "promo_code" in updates else config.promo_code

    if is_enabled:
        if not promo_code:
            raise PreconditionFailedError("A promo code is required to enable review requests")
        _, error = resolve_reward(promo_code)
        if error:
            raise PreconditionFailedError(f"Cannot enable product: {error}")

    for field, value in updates.items():
        setattr(config, field, value)
    db.commit()
    db.refresh(config)

    logger.info(f"Updated product {platform_product_id} for merchant {merchant_id}: {sorted(updates)}")
    return serialize_product_config(config)
