"""Product catalog sync and campaign configuration tests"""
import pytest
from unittest.mock import patch

from reviewloop.core.exceptions import NotFoundError, PlatformAPIError, PreconditionFailedError
from reviewloop.models.product_config import ProductConfig
from reviewloop.services.product_service import (
    get_product_config, list_product_configs, sync_products, update_product_config
)


@pytest.fixture
def mock_catalog():
    with patch("reviewloop.services.platform_service.list_products") as mock_list:
        yield mock_list


@pytest.mark.medium
class TestSyncProducts:
    def test_inserts_disabled(self, merchant, db_session, mock_catalog):
        mock_catalog.return_value = [
            {"id": "prod_a", "title": "Alpha"},
            {"id": "prod_b", "title": None, "visibility": "archived"},
        ]

        counts = sync_products(merchant, db_session)

        assert counts == {"inserted": 2, "updated": 0, "deleted": 0, "archived": 0}
        configs = {c["platform_product_id"]: c for c in list_product_configs(merchant.id, db_session)}
        assert configs["prod_a"]["is_enabled"] is False
        assert configs["prod_a"]["status"] == "visible"
        assert configs["prod_b"]["product_name"] == "Untitled Product"
        assert configs["prod_b"]["status"] == "archived"

    def test_keeps_campaign_settings(self, merchant, product_config, db_session, mock_catalog):
        mock_catalog.return_value = [{"id": "prod_test123", "title": "Pro Plan (2026)", "visibility": "hidden"}]

        counts = sync_products(merchant, db_session)

        assert counts["updated"] == 1
        db_session.refresh(product_config)
        assert product_config.product_name == "Pro Plan (2026)"
        assert product_config.status == "hidden"
        assert product_config.is_enabled is True
        assert product_config.promo_code == "promo_123"

    def test_unchanged_product_not_counted(self, merchant, product_config, db_session, mock_catalog):
        mock_catalog.return_value = [{"id": "prod_test123", "title": "Pro Plan", "visibility": "visible"}]
        assert sync_products(merchant, db_session)["updated"] == 0

    def test_removed_product_deleted(self, merchant, product_config, db_session, mock_catalog):
        mock_catalog.return_value = []

        assert sync_products(merchant, db_session)["deleted"] == 1
        assert db_session.query(ProductConfig).count() == 0

    def test_removed_product_with_reviews_archived(self, merchant, product_config, pending_review, db_session, mock_catalog):
        mock_catalog.return_value = []

        counts = sync_products(merchant, db_session)

        assert counts["archived"] == 1
        assert counts["deleted"] == 0
        db_session.refresh(product_config)
        assert product_config.status == "archived"
        assert product_config.is_enabled is False

        # Already archived: nothing to do
        assert sync_products(merchant, db_session)["archived"] == 0

    def test_platform_failure_changes_nothing(self, merchant, product_config, db_session, mock_catalog):
        mock_catalog.side_effect = PlatformAPIError("Platform returned HTTP 503")

        with pytest.raises(PlatformAPIError):
            sync_products(merchant, db_session)
        assert db_session.query(ProductConfig).count() == 1


@pytest.mark.critical
class TestUpdateProductConfig:
    def test_enable_requires_promo(self, merchant, db_session):
        db_session.add(ProductConfig(merchant_id=merchant.id, platform_product_id="prod_new", product_name="New"))
        db_session.commit()

        with pytest.raises(PreconditionFailedError):
            update_product_config(merchant.id, "prod_new", {"is_enabled": True}, db_session)

    def test_enable_with_active_promo(self, merchant, db_session, mock_promo):
        db_session.add(ProductConfig(merchant_id=merchant.id, platform_product_id="prod_new", product_name="New"))
        db_session.commit()

        result = update_product_config(
            merchant.id, "prod_new",
            {"is_enabled": True, "promo_code": "promo_123", "promo_code_name": " THANKS20 "},
            db_session
        )

        assert result["is_enabled"] is True
        assert result["promo_code_name"] == "THANKS20"
        mock_promo.assert_called_with("promo_123")

    def test_enable_with_inactive_promo(self, merchant, product_config, db_session, mock_promo):
        mock_promo.return_value = {"status": "expired"}

        with pytest.raises(PreconditionFailedError):
            update_product_config(merchant.id, "prod_test123", {"review_type": "photo"}, db_session)

        db_session.refresh(product_config)
        assert product_config.review_type == "any"

    def test_disable_skips_promo_check(self, merchant, product_config, db_session, mock_promo):
        mock_promo.return_value = {"status": "expired"}

        result = update_product_config(merchant.id, "prod_test123", {"is_enabled": False, "promo_code": ""}, db_session)

        assert result["is_enabled"] is False
        assert result["promo_code"] is None

    def test_null_flags_ignored(self, merchant, product_config, db_session):
        result = update_product_config(
            merchant.id, "prod_test123", {"is_enabled": None, "review_type": None}, db_session
        )
        assert result["is_enabled"] is True
        assert result["review_type"] == "any"

    def test_unknown_product(self, merchant, db_session):
        with pytest.raises(NotFoundError):
            get_product_config(merchant.id, "prod_missing", db_session)
