"""HTML templates for transactional review emails"""
from html import escape
from typing import Optional, Tuple

REVIEW_REQUEST_SUBJECT = "Review Request"
REWARD_DELIVERY_SUBJECT = "Thank You for Your Review!"
REVIEW_REJECTION_SUBJECT = "Update on Your Review Submission"

_BUTTON_STYLE = (
    "display: inline-block; padding: 14px 36px; background-color: #2563eb; color: white; "
    "text-decoration: none; border-radius: 9999px; font-weight: bold;"
)


def _wrap(body: str, brand_name: str) -> str:
    return f"""
    <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; color: #111827;">
      {body}
      <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 32px 0 16px;"/>
      <p style="color: #6b7280; font-size: 12px;">Sent on behalf of {escape(brand_name)}</p>
    </div>
    """


def render_review_request_email(
    customer_name: str,
    product_name: str,
    promo_details: str,
    brand_name: str,
    review_link: str,
    expires_in_days: int = 7
) -> Tuple[str, str]:
    """Ask a customer for a photo/video review.

    promo_details must already be masked; the redeemable code is only sent after approval.

    Returns:
        (subject, html)
    """
    body = f"""
      <h2 style="text-align: center;">Share your experience &amp; get rewarded!</h2>
      <p>Hey <strong>{escape(customer_name)}</strong>,</p>
      <p>We hope you're loving your recent purchase of <strong>{escape(product_name)}</strong>!</p>
      <p>Here's the deal:</p>
      <ul>
        <li>Record a quick photo or video review about your experience</li>
        <li>Upload it using the link below</li>
        <li>Once your review is approved, you'll receive your reward: <strong>{escape(promo_details)}</strong></li>
      </ul>
      <p style="text-align: center; margin: 28px 0;">
        <a href="{escape(review_link, quote=True)}" target="_blank" rel="noopener noreferrer" style="{_BUTTON_STYLE}">
          Share My Review
        </a>
      </p>
      <p style="color: #6b7280; font-size: 12px;">
        This link expires in {expires_in_days} days. Or copy and paste it into your browser:<br/>
        {escape(review_link)}
      </p>
    """
    return REVIEW_REQUEST_SUBJECT, _wrap(body, brand_name)


def render_reward_delivery_email(
    customer_name: str,
    product_name: str,
    promo_code: str,
    brand_name: str
) -> Tuple[str, str]:
    """Deliver the redeemable promo code after approval. Returns (subject, html)"""
    body = f"""
      <h2 style="text-align: center;">Your review was approved!</h2>
      <p>Hey <strong>{escape(customer_name)}</strong>,</p>
      <p>Thanks for sharing your experience with <strong>{escape(product_name)}</strong>.</p>
      <p>Here is your reward code:</p>
      <p style="font-size: 24px; font-weight: bold; text-align: center; letter-spacing: 2px;">{escape(promo_code)}</p>
      <p>Use it at checkout on your next purchase.</p>
    """
    return REWARD_DELIVERY_SUBJECT, _wrap(body, brand_name)


def render_review_rejection_email(
    customer_name: str,
    product_name: str,
    brand_name: str,
    rejection_reason: Optional[str] = None
) -> Tuple[str, str]:
    """Tell the customer their submission was not accepted. Returns (subject, html)"""
    reason_html = ""
    if rejection_reason:
        reason_html = f"""
      <p><strong>Reason:</strong></p>
      <p style="background-color: #f3f4f6; padding: 12px; border-radius: 8px;">{escape(rejection_reason)}</p>
        """
    body = f"""
      <p>Hey <strong>{escape(customer_name)}</strong>,</p>
      <p>Thank you for taking the time to review <strong>{escape(product_name)}</strong>.
      Unfortunately we weren't able to approve your submission.</p>
      {reason_html}
      <p>We appreciate your support.</p>
    """
    return REVIEW_REJECTION_SUBJECT, _wrap(body, brand_name)
