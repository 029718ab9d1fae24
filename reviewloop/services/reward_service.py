"""Reward resolution - turns a configured promo reference into something safe to email.

Promo codes live on the commerce platform and can be deactivated at any time,
so they are resolved at send time and never cached.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from reviewloop.core.exceptions import PlatformAPIError
from reviewloop.services.platform_service import retrieve_promo_code

logger = logging.getLogger(__name__)

# Shown in place of the redeemable code until the review is approved
MASKED_CODE = "XXXXXX"


def _format_amount(amount: Any) -> str:
    try:
        number = float(amount)
    except (TypeError, ValueError):
        return str(amount)
    return str(int(number)) if number.is_integer() else f"{number:.2f}"


def describe_promo(promo: Dict[str, Any]) -> Optional[str]:
    """Customer-facing description of a promo without the literal code.

    Returns None for promo types that cannot be described.
    """
    promo_type = promo.get("promo_type")
    amount = promo.get("amount_off")
    if amount is None:
        return None

    if promo_type == "percentage":
        description = f"{MASKED_CODE} - {_format_amount(amount)}% off"
    elif promo_type == "flat_amount":
        currency = (promo.get("currency") or "").upper()
        description = f"{MASKED_CODE} - {_format_amount(amount)} {currency}".rstrip() + " off"
    else:
        return None

    product = promo.get("product")
    product_title = product.get("title") if isinstance(product, dict) else None
    if product_title:
        description += f" on {product_title}"
    return description


def _fetch_active_promo(promo_code_id: Optional[str]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    if not promo_code_id:
        return None, "Promo code not configured"

    try:
        promo = retrieve_promo_code(promo_code_id)
    except PlatformAPIError as e:
        logger.error(f"Error fetching promo code {promo_code_id}: {e}")
        return None, f"Failed to fetch promo code: {e}"

    if not isinstance(promo, dict):
        logger.error(f"Unexpected response for promo code {promo_code_id}: {type(promo).__name__}")
        return None, "Unexpected promo code response"

    status = promo.get("status")
    if status and status != "active":
        logger.warning(f"Promo code {promo_code_id} is not active (status: {status})")
        return None, f"Promo code is not active (status: {status})"

    return promo, None


def resolve_reward(promo_code_id: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Resolve a promo reference for a review request.

    Returns:
        (description, None) when the reward is usable,
        (None, reason) when it is not configured, retired or cannot be fetched
    """
    promo, error = _fetch_active_promo(promo_code_id)
    if error:
        return None, error

    description = describe_promo(promo)
    if not description:
        return None, f"Unsupported promo type: {promo.get('promo_type')}"
    return description, None


def resolve_reward_code(promo_code_id: Optional[str], promo_code_name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Resolve the redeemable code to deliver after approval.

    Returns:
        (code, None) when the reward is still valid, (None, reason) otherwise
    """
    promo, error = _fetch_active_promo(promo_code_id)
    if error:
        return None, error

    code = promo_code_name or promo.get("code")
    if not code:
        return None, "Promo code name not configured"
    return code, None
