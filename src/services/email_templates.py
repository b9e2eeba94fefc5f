"""HTML email composition for order notifications."""

from datetime import datetime, timezone
from html import escape
from typing import Any

from src.services.notification_service import EmailAttachment, EmailMessage

BRAND_NAME = "Joanna's Reborns"
PRIMARY_COLOR = "#f08ba8"


def _money(value: Any) -> str:
    return f"${float(value or 0):.2f}"


def render_layout(content: str, site_url: str, brand_name: str = BRAND_NAME) -> str:
    """Wrap message content in the branded email layout.

    Args:
        content: Inner HTML. Callers escape any user-provided text.
        site_url: Storefront URL for the footer links.
        brand_name: Shop name shown in header and footer.

    Returns:
        str: Complete HTML document.
    """
    year = datetime.now(timezone.utc).year
    brand = escape(brand_name)
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{brand}</title>
</head>
<body style="font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif; background-color: #f9f9f9; margin: 0; padding: 20px 0;">
    <div style="max-width: 600px; margin: 0 auto; background-color: #ffffff; border-radius: 8px; overflow: hidden;">
        <div style="text-align: center; padding: 30px 20px; border-bottom: 3px solid {PRIMARY_COLOR};">
            <h1 style="color: #1a1a1a; margin: 0; font-size: 24px;">{brand}</h1>
        </div>

        <div style="padding: 40px 30px; color: #333333; line-height: 1.6; font-size: 16px;">
            {content}
        </div>

        <div style="background-color: #f1f1f1; padding: 20px; text-align: center; font-size: 12px; color: #888888;">
            <p>&copy; {year} {brand}. All rights reserved.</p>
            <p><a href="{site_url}" style="color: {PRIMARY_COLOR}; text-decoration: none;">Visit Website</a></p>
        </div>
    </div>
</body>
</html>
"""


def _button(href: str, label: str) -> str:
    return (
        f'<a href="{href}" style="display: inline-block; background-color: {PRIMARY_COLOR}; '
        f'color: #ffffff; padding: 12px 24px; border-radius: 6px; text-decoration: none; '
        f'font-weight: bold;">{label}</a>'
    )


class OrderEmailComposer:
    """Builds the customer and admin emails sent for an order."""

    def __init__(self, site_url: str, admin_recipient: str, brand_name: str = BRAND_NAME) -> None:
        self.site_url = site_url.rstrip("/")
        self.admin_recipient = admin_recipient
        self.brand_name = brand_name

    def order_confirmation(self, order: dict[str, Any]) -> EmailMessage:
        """Confirmation sent to the customer after checkout."""
        customer = order["customer"]
        reference = escape(order["reference"])
        lines = "".join(
            f"<li>{escape(item['name'])} (x{int(item['quantity'])}) - "
            f"{_money(float(item['price']) * int(item['quantity']))}</li>"
            for item in order["items"]
        )
        track_url = f"{self.site_url}/track-order?reference={order['reference']}"

        content = f"""
            <h1>Order Confirmed!</h1>
            <p>Hi {escape(customer['name'])},</p>
            <p>Thank you for your order. Your order reference is <strong>{reference}</strong>.</p>
            <p>We will review your order and send you payment details shortly.</p>
            <h3>Order Summary:</h3>
            <ul>{lines}</ul>
            <p><strong>Total: {_money(order['payment'].get('total_amount'))}</strong></p>
            <p>{_button(track_url, "Track Your Order")}</p>
            <p>Best regards,<br>{escape(self.brand_name)} Team</p>
        """
        return EmailMessage(
            to=customer["email"],
            subject=f"Order Confirmation - {order['reference']}",
            html=render_layout(content, self.site_url, self.brand_name),
            kind="order_confirmation",
        )

    def order_admin_alert(self, order: dict[str, Any]) -> EmailMessage:
        """New-order alert sent to the shop administrator."""
        customer = order["customer"]
        shipping = order["shipping"]
        payment = order["payment"]
        method = payment.get("custom_method") or payment.get("preferred_method") or ""
        admin_url = f"{self.site_url}/admin/orders/{order['id']}"

        content = f"""
            <h2>New Order Received</h2>
            <p><strong>Reference:</strong> {escape(order['reference'])}</p>
            <p><strong>Customer:</strong> {escape(customer['name'])} ({escape(customer['email'])})</p>
            <p><strong>Ship to:</strong> {escape(shipping.get('city', ''))}, {escape(shipping.get('country', ''))}</p>
            <p><strong>Payment method:</strong> {escape(method)}</p>
            <p><strong>Items:</strong> {sum(int(item['quantity']) for item in order['items'])}</p>
            <p><strong>Total:</strong> {_money(payment.get('total_amount'))}</p>
            <p>{_button(admin_url, "View Order in Admin")}</p>
        """
        return EmailMessage(
            to=self.admin_recipient,
            subject=f"New Order Received - {order['reference']}",
            html=render_layout(content, self.site_url, self.brand_name),
            kind="order_admin_alert",
        )

    def order_reply(
        self,
        order: dict[str, Any],
        subject: str,
        message: str,
        attachments: list[EmailAttachment] | None = None,
    ) -> EmailMessage:
        """Free-form reply from the administrator, e.g. payment details."""
        body = escape(message).replace("\r\n", "\n").replace("\n", "<br>")
        content = f"""
            <div style="color: #333;">
                {body}
                <br><br>
                <hr>
                <p style="font-size: 12px; color: #888;">{escape(self.brand_name)} &middot; Order {escape(order['reference'])}</p>
            </div>
        """
        return EmailMessage(
            to=order["customer"]["email"],
            subject=subject,
            html=render_layout(content, self.site_url, self.brand_name),
            attachments=list(attachments or []),
            kind="order_reply",
        )
