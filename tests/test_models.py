"""Database integrity tests"""
import pytest
from sqlalchemy.exc import IntegrityError

from reviewloop.models.email_log import EmailLog
from reviewloop.models.merchant import Merchant
from reviewloop.models.processed_event import ProcessedEvent
from reviewloop.models.review import Review


@pytest.mark.medium
class TestModelRelationships:
    def test_merchant_reviews_relationship(self, merchant, pending_review, db_session):
        db_session.refresh(merchant)
        assert [r.id for r in merchant.reviews] == [pending_review.id]
        assert pending_review.product_config.platform_product_id == "prod_test123"

    def test_merchant_email_logs_relationship(self, merchant, db_session):
        db_session.add(EmailLog(merchant_id=merchant.id, email_type="review_request", recipient="a@b.c", status="sent"))
        db_session.commit()
        db_session.refresh(merchant)
        assert len(merchant.email_logs) == 1

    def test_deleting_merchant_cascades(self, merchant, pending_review, db_session):
        db_session.delete(merchant)
        db_session.commit()
        assert db_session.query(Review).count() == 0

    def test_terminal_status(self, review_factory, product_config):
        assert review_factory(product_config, status="approved").is_terminal
        assert not review_factory(product_config).is_terminal


@pytest.mark.critical
class TestConstraints:
    def test_credit_balance_never_negative(self, merchant, db_session):
        merchant.credit_balance = -1
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_company_id_unique(self, merchant, db_session):
        db_session.add(Merchant(company_id="biz_test123"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_submission_token_unique(self, pending_review, review_factory, product_config, db_session):
        with pytest.raises(IntegrityError):
            review_factory(product_config, submission_token="tok_pending_submission")
        db_session.rollback()

    def test_event_id_unique(self, db_session):
        db_session.add(ProcessedEvent(event_id="evt_1", event_type="payment.succeeded"))
        db_session.commit()
        db_session.add(ProcessedEvent(event_id="evt_1", event_type="payment.succeeded"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_merchant_defaults(self, db_session):
        merchant = Merchant(company_id="biz_defaults")
        db_session.add(merchant)
        db_session.commit()
        assert merchant.credit_balance == 0
        assert merchant.review_display_format == "grid"
