"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY


def _counter(name: str, documentation: str, labelnames=()):
    # Re-importing the module (e.g. under test reloads) must not re-register collectors
    try:
        return Counter(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


webhook_events_counter = _counter(
    'reviewloop_webhook_events_total',
    'Total number of inbound webhook events by outcome',
    ['event_type', 'outcome']
)

emails_counter = _counter(
    'reviewloop_emails_total',
    'Total number of notification attempts',
    ['email_type', 'status']
)

credits_counter = _counter(
    'reviewloop_credits_total',
    'Total credits added or consumed',
    ['direction']
)

review_transitions_counter = _counter(
    'reviewloop_review_transitions_total',
    'Total number of review lifecycle transitions',
    ['to_status']
)
