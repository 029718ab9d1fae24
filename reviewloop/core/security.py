"""Security dependencies: webhook signatures, merchant access, rate limiting"""
import base64
import hashlib
import hmac
import time
from typing import Optional

from fastapi import Header, HTTPException, Request

from reviewloop.core.config import settings
from reviewloop.core.exceptions import PlatformAPIError
from reviewloop.core.logging import security_logger
from reviewloop.db.redis import check_rate_limit
from reviewloop.services.platform_service import get_company_access_level


def _secret_bytes(secret: str) -> bytes:
    # Standard Webhooks / Svix secrets are "whsec_" + base64; plain strings are used as-is
    if secret.startswith("whsec_"):
        try:
            return base64.b64decode(secret[len("whsec_"):])
        except ValueError:
            security_logger.warning("Webhook secret has whsec_ prefix but is not valid base64")
    return secret.encode("utf-8")


def compute_webhook_signature(payload: bytes, msg_id: str, msg_timestamp: str, secret: str) -> str:
    """Base64 HMAC-SHA256 over "id.timestamp.payload" """
    signed_payload = msg_id.encode("utf-8") + b"." + msg_timestamp.encode("utf-8") + b"." + payload
    digest = hmac.new(_secret_bytes(secret), signed_payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_webhook_signature(
    payload: bytes,
    msg_id: Optional[str],
    msg_timestamp: Optional[str],
    signature_header: Optional[str],
    secret: str,
    tolerance_seconds: Optional[int] = None
) -> bool:
    """Verify a Standard Webhooks / Svix style signature.

    The signature header may carry several space-separated "v1,<base64>"
    entries; any match is accepted. Timestamps further than the tolerance
    from now are rejected to limit replay.
    """
    if not secret or not msg_id or not msg_timestamp or not signature_header:
        return False

    if tolerance_seconds is None:
        tolerance_seconds = settings.WEBHOOK_TOLERANCE_SECONDS
    try:
        timestamp = int(msg_timestamp)
    except ValueError:
        security_logger.warning(f"Webhook timestamp is not an integer: {msg_timestamp}")
        return False
    if abs(time.time() - timestamp) > tolerance_seconds:
        security_logger.warning(f"Webhook timestamp outside tolerance: {msg_timestamp}")
        return False

    expected_signature = compute_webhook_signature(payload, msg_id, msg_timestamp, secret)
    for sig_part in signature_header.split(" "):
        if not sig_part.startswith("v1,"):
            continue
        provided_signature = sig_part.split(",", 1)[1]
        if hmac.compare_digest(expected_signature, provided_signature):
            return True

    security_logger.warning(f"Webhook signature verification failed for message {msg_id}")
    return False


def get_client_identifier(request: Request) -> str:
    """Get a unique identifier for rate limiting"""
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


def rate_limit_public(request: Request) -> None:
    """Dependency: fixed-window rate limit for unauthenticated endpoints"""
    identifier = get_client_identifier(request)
    if not check_rate_limit(identifier):
        security_logger.warning(f"Rate limit exceeded - Identifier: {identifier}, Path: {request.url.path}")
        raise HTTPException(429, "Rate limit exceeded. Please try again later.")


def require_merchant_access(
    company_id: str,
    x_platform_user_token: Optional[str] = Header(None, alias="x-platform-user-token")
) -> str:
    """Dependency: the caller must be an admin of the company in the path. Returns company_id."""
    if not x_platform_user_token:
        raise HTTPException(401, "Not authenticated")

    try:
        access_level = get_company_access_level(x_platform_user_token, company_id)
    except PlatformAPIError as e:
        if e.status_code in (401, 403):
            security_logger.warning(f"Platform rejected user token for company {company_id}")
            raise HTTPException(401, "Not authenticated")
        security_logger.error(f"Access check failed for company {company_id}: {e}")
        raise HTTPException(502, "Unable to verify access")

    if access_level != "admin":
        security_logger.warning(f"Access denied for company {company_id} (level: {access_level})")
        raise HTTPException(403, "You do not have access to this company")

    return company_id
