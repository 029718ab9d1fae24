"""Commerce platform REST client (catalog, promo codes, access checks, checkout)"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from reviewloop.core.config import settings
from reviewloop.core.exceptions import PlatformAPIError

logger = logging.getLogger(__name__)


def _headers(token: Optional[str] = None) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {token or settings.PLATFORM_API_KEY}",
        "Accept": "application/json",
    }


def _request(
    method: str,
    path: str,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Dict[str, Any]] = None,
    token: Optional[str] = None
) -> Dict[str, Any]:
    """Issue a platform API request and return the decoded JSON body.

    Raises:
        PlatformAPIError: On transport errors and non-2xx responses
    """
    url = f"{settings.PLATFORM_API_BASE.rstrip('/')}/{path.lstrip('/')}"
    try:
        response = httpx.request(
            method,
            url,
            params=params,
            json=json,
            headers=_headers(token),
            timeout=settings.PLATFORM_TIMEOUT
        )
    except httpx.TimeoutException:
        raise PlatformAPIError(f"Platform request timed out: {method} {path}")
    except httpx.RequestError as e:
        raise PlatformAPIError(f"Platform request failed: {method} {path}: {e}")

    if response.status_code >= 400:
        detail = response.text[:200] if response.text else response.reason_phrase
        raise PlatformAPIError(
            f"Platform returned HTTP {response.status_code} for {method} {path}: {detail}",
            status_code=response.status_code
        )

    try:
        return response.json()
    except ValueError:
        raise PlatformAPIError(f"Platform returned invalid JSON for {method} {path}")


def _list_all(path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Follow cursor pagination until the last page"""
    items: List[Dict[str, Any]] = []
    cursor = None
    while True:
        page_params = dict(params)
        if cursor:
            page_params["after"] = cursor
        body = _request("GET", path, params=page_params)
        items.extend(body.get("data", []))

        page_info = body.get("page_info") or {}
        cursor = page_info.get("end_cursor")
        if not page_info.get("has_next_page") or not cursor:
            return items


def retrieve_promo_code(promo_id: str) -> Dict[str, Any]:
    """Fetch a promo code.

    Fields used downstream: status, promo_type ('percentage' | 'flat_amount'),
    amount_off, currency, code, product.title.
    """
    return _request("GET", f"/promo_codes/{promo_id}")


def list_promo_codes(company_id: str) -> List[Dict[str, Any]]:
    """Active promo codes for a company. Codes without a status are treated as active."""
    codes = _list_all("/promo_codes", {"company_id": company_id})
    return [c for c in codes if not c.get("status") or c.get("status") == "active"]


def list_products(company_id: str) -> List[Dict[str, Any]]:
    """All products in a company's catalog, newest first"""
    return _list_all("/products", {"company_id": company_id, "order": "created_at", "direction": "desc"})


def get_company_access_level(user_token: str, company_id: str) -> str:
    """Ask the platform which access level the token holder has for a company.

    Returns:
        'admin', 'customer' or 'no_access'
    """
    body = _request("GET", f"/access/{company_id}", token=user_token)
    if not body.get("has_access"):
        return "no_access"
    return body.get("access_level") or "no_access"


def create_checkout_configuration(plan_id: str, company_id: str) -> Dict[str, Any]:
    """Create a checkout for a credit pack; the company id rides along in metadata
    so the payment webhook can credit the right merchant."""
    logger.info(f"Creating checkout configuration for plan {plan_id} and company {company_id}")
    return _request(
        "POST",
        "/checkout_configurations",
        json={"plan_id": plan_id, "metadata": {"merchantId": company_id}}
    )
