"""Reward resolution tests"""
import pytest

from reviewloop.core.exceptions import PlatformAPIError
from reviewloop.services.reward_service import (
    MASKED_CODE, describe_promo, resolve_reward, resolve_reward_code
)


@pytest.mark.critical
class TestResolveReward:
    """Review-request time resolution"""

    def test_active_percentage_promo(self, mock_promo):
        description, error = resolve_reward("promo_123")
        assert error is None
        assert description == "XXXXXX - 20% off on Pro Plan"
        mock_promo.assert_called_once_with("promo_123")

    def test_description_never_reveals_code(self, mock_promo):
        description, _ = resolve_reward("promo_123")
        assert "THANKS20" not in description
        assert description.startswith(MASKED_CODE)

    def test_inactive_promo(self, mock_promo):
        mock_promo.return_value = {"status": "inactive", "promo_type": "percentage", "amount_off": 20}
        description, error = resolve_reward("promo_123")
        assert description is None
        assert error == "Promo code is not active (status: inactive)"

    def test_not_configured(self, mock_promo):
        description, error = resolve_reward(None)
        assert description is None
        assert error == "Promo code not configured"
        mock_promo.assert_not_called()

    def test_lookup_failure(self, mock_promo):
        mock_promo.side_effect = PlatformAPIError("Platform returned HTTP 404", status_code=404)
        description, error = resolve_reward("promo_gone")
        assert description is None
        assert error.startswith("Failed to fetch promo code:")
        assert "404" in error

    def test_unsupported_type(self, mock_promo):
        mock_promo.return_value = {"status": "active", "promo_type": "free_trial", "amount_off": 7}
        _, error = resolve_reward("promo_123")
        assert error == "Unsupported promo type: free_trial"

    @pytest.mark.parametrize("body", [None, [], ["promo_123"], "promo_123"])
    def test_non_object_response(self, mock_promo, body):
        mock_promo.return_value = body
        assert resolve_reward("promo_123") == (None, "Unexpected promo code response")


@pytest.mark.medium
class TestDescribePromo:
    def test_flat_amount(self):
        promo = {"promo_type": "flat_amount", "amount_off": 10, "currency": "usd"}
        assert describe_promo(promo) == "XXXXXX - 10 USD off"

    def test_flat_amount_with_cents(self):
        promo = {"promo_type": "flat_amount", "amount_off": "4.5", "currency": "eur", "product": {"title": "Course"}}
        assert describe_promo(promo) == "XXXXXX - 4.50 EUR off on Course"

    def test_missing_amount(self):
        assert describe_promo({"promo_type": "percentage"}) is None

    def test_product_reference_without_title(self):
        promo = {"promo_type": "percentage", "amount_off": 15, "product": "prod_abc"}
        assert describe_promo(promo) == "XXXXXX - 15% off"


@pytest.mark.critical
class TestResolveRewardCode:
    """Approval time resolution"""

    def test_uses_configured_code_name(self, mock_promo):
        assert resolve_reward_code("promo_123", "CUSTOMNAME") == ("CUSTOMNAME", None)

    def test_falls_back_to_platform_code(self, mock_promo):
        assert resolve_reward_code("promo_123", None) == ("THANKS20", None)

    def test_retired_promo(self, mock_promo):
        mock_promo.return_value = {"status": "archived", "code": "THANKS20"}
        code, error = resolve_reward_code("promo_123", "THANKS20")
        assert code is None
        assert "not active" in error

    def test_non_object_response(self, mock_promo):
        mock_promo.return_value = None
        assert resolve_reward_code("promo_123", "THANKS20") == (None, "Unexpected promo code response")
