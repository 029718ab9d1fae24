"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from reviewloop.models.base import Base
from reviewloop.models.merchant import Merchant
from reviewloop.models.product_config import ProductConfig
from reviewloop.models.review import Review
from reviewloop.models.processed_event import ProcessedEvent
from reviewloop.models.email_log import EmailLog
from reviewloop.models.credit_transaction import CreditTransaction

__all__ = [
    "Base", "Merchant", "ProductConfig", "Review",
    "ProcessedEvent", "EmailLog", "CreditTransaction"
]
