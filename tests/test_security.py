"""Webhook signature and access control tests"""
import base64
import time

import pytest
from fastapi import HTTPException
from unittest.mock import patch

from reviewloop.core.exceptions import PlatformAPIError
from reviewloop.core.security import (
    compute_webhook_signature, require_merchant_access, verify_webhook_signature
)

SECRET = "whsec_" + base64.b64encode(b"test-signing-secret").decode()
PAYLOAD = b'{"id":"evt_1","type":"payment.succeeded","data":{}}'


def _sign(payload=PAYLOAD, msg_id="msg_1", timestamp=None, secret=SECRET):
    timestamp = timestamp or str(int(time.time()))
    return msg_id, timestamp, "v1," + compute_webhook_signature(payload, msg_id, timestamp, secret)


@pytest.mark.critical
class TestWebhookSignature:
    """Standard Webhooks / Svix signature verification"""

    def test_valid_signature(self):
        msg_id, timestamp, signature = _sign()
        assert verify_webhook_signature(PAYLOAD, msg_id, timestamp, signature, SECRET) is True

    def test_tampered_body(self):
        msg_id, timestamp, signature = _sign()
        assert verify_webhook_signature(PAYLOAD + b" ", msg_id, timestamp, signature, SECRET) is False

    def test_wrong_secret(self):
        msg_id, timestamp, signature = _sign(secret="whsec_" + base64.b64encode(b"other").decode())
        assert verify_webhook_signature(PAYLOAD, msg_id, timestamp, signature, SECRET) is False

    def test_stale_timestamp(self):
        msg_id, timestamp, signature = _sign(timestamp=str(int(time.time()) - 3600))
        assert verify_webhook_signature(PAYLOAD, msg_id, timestamp, signature, SECRET, tolerance_seconds=300) is False

    def test_any_of_several_signatures(self):
        msg_id, timestamp, signature = _sign()
        header = f"v1,bm90LWEtc2lnbmF0dXJl {signature}"
        assert verify_webhook_signature(PAYLOAD, msg_id, timestamp, header, SECRET) is True

    @pytest.mark.parametrize("missing", ["msg_id", "timestamp", "signature"])
    def test_missing_header(self, missing):
        values = dict(zip(("msg_id", "timestamp", "signature"), _sign()))
        values[missing] = None
        assert verify_webhook_signature(PAYLOAD, values["msg_id"], values["timestamp"], values["signature"], SECRET) is False

    def test_plain_secret(self):
        msg_id, timestamp, signature = _sign(secret="plain-secret")
        assert verify_webhook_signature(PAYLOAD, msg_id, timestamp, signature, "plain-secret") is True


@pytest.mark.critical
class TestMerchantAccess:
    """Dashboard routes require an admin platform user"""

    def test_missing_token(self):
        with pytest.raises(HTTPException) as exc_info:
            require_merchant_access("biz_test123", None)
        assert exc_info.value.status_code == 401

    def test_admin(self):
        with patch("reviewloop.core.security.get_company_access_level", return_value="admin"):
            assert require_merchant_access("biz_test123", "user-token") == "biz_test123"

    def test_customer_forbidden(self):
        with patch("reviewloop.core.security.get_company_access_level", return_value="customer"):
            with pytest.raises(HTTPException) as exc_info:
                require_merchant_access("biz_test123", "user-token")
        assert exc_info.value.status_code == 403

    def test_rejected_token(self):
        error = PlatformAPIError("unauthorized", status_code=401)
        with patch("reviewloop.core.security.get_company_access_level", side_effect=error):
            with pytest.raises(HTTPException) as exc_info:
                require_merchant_access("biz_test123", "bad-token")
        assert exc_info.value.status_code == 401

    def test_platform_outage(self):
        error = PlatformAPIError("Platform request timed out")
        with patch("reviewloop.core.security.get_company_access_level", side_effect=error):
            with pytest.raises(HTTPException) as exc_info:
                require_merchant_access("biz_test123", "user-token")
        assert exc_info.value.status_code == 502
