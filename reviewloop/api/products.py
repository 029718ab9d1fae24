"""Product review campaign configuration"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from reviewloop.api.errors import to_http_exception
from reviewloop.core.exceptions import ReviewLoopError
from reviewloop.core.security import require_merchant_access
from reviewloop.db.session import get_db
from reviewloop.schemas.products import ProductConfigUpdate
from reviewloop.services.merchant_service import require_merchant
from reviewloop.services.product_service import list_product_configs, sync_products, update_product_config

router = APIRouter(prefix="/api/merchants/{company_id}/products", tags=["products"])
logger = logging.getLogger(__name__)


@router.get("")
def get_products(company_id: str = Depends(require_merchant_access), db: Session = Depends(get_db)):
    try:
        merchant = require_merchant(company_id, db)
    except ReviewLoopError as e:
        raise to_http_exception(e)
    return {"products": list_product_configs(merchant.id, db)}


@router.post("/sync")
def sync(company_id: str = Depends(require_merchant_access), db: Session = Depends(get_db)):
    """Pull the catalog from the platform"""
    try:
        merchant = require_merchant(company_id, db)
        counts = sync_products(merchant, db)
    except ReviewLoopError as e:
        logger.error(f"Product sync failed for {company_id}: {e}")
        raise to_http_exception(e)
    return {"success": True, **counts, "products": list_product_configs(merchant.id, db)}


@router.patch("/{platform_product_id}")
def update_product(
    platform_product_id: str,
    request_data: ProductConfigUpdate,
    company_id: str = Depends(require_merchant_access),
    db: Session = Depends(get_db)
):
    """Enable/disable a product, or change its review type or reward"""
    try:
        merchant = require_merchant(company_id, db)
        return update_product_config(merchant.id, platform_product_id, request_data.model_dump(exclude_unset=True), db)
    except ReviewLoopError as e:
        raise to_http_exception(e)
