# shopstar/services/notification_service.py
import html
import logging
from collections.abc import Sequence

from shopstar.core.config import Settings
from shopstar.core.email_client import send_email
from shopstar.models.order import Order, OrderItem
from shopstar.models.user import User

logger = logging.getLogger(__name__)

STATUS_MESSAGES: dict[str, str] = {
    "processing": "Your order is being prepared.",
    "shipped": "Your order is on its way!",
    "delivered": "Your order has been delivered. Enjoy!",
    "cancelled": "Your order has been cancelled.",
}


def _money(value: float) -> str:
    return f"${value:.2f}"


def _address_lines(order: Order) -> list[str]:
    return [
        order.street,
        f"{order.city}, {order.state} {order.zip_code}",
        order.country,
    ]


def _variant_label(item: OrderItem) -> str:
    if not item.variant:
        return ""
    return " (" + ", ".join(f"{k}: {v}" for k, v in item.variant.items()) + ")"


class NotificationService:
    """
    Transactional customer emails.

    Every send is best effort: failures are logged and reported as
    False, never raised, so an SMTP outage cannot break checkout.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def _send(self, to_email: str, subject: str, text_body: str, html_body: str) -> bool:
        if not self.settings.email_enabled:
            logger.info(f"Email not configured; skipping '{subject}' to {to_email}")
            return False

        try:
            send_email(self.settings, to_email, subject, text_body, html_body)
        except Exception as e:
            logger.error(f"Failed to send '{subject}' to {to_email}: {e}")
            return False

        logger.info(f"Sent '{subject}' to {to_email}")
        return True

    def send_order_confirmation(
        self,
        order: Order,
        user: User,
        items: Sequence[OrderItem] = (),
    ) -> bool:
        subject = f"Order Confirmation - {order.order_number}"

        text_lines = [
            f"Hi {user.name},",
            "",
            f"Thank you for your order! Your order number is {order.order_number}.",
            "",
            "Items:",
        ]
        html_rows = []
        for item in items:
            line_total = _money(item.price * item.quantity)
            text_lines.append(
                f"  - {item.name}{_variant_label(item)} x{item.quantity}: {line_total}"
            )
            html_rows.append(
                f"<tr><td>{html.escape(item.name + _variant_label(item))}</td>"
                f"<td>{item.quantity}</td><td>{line_total}</td></tr>"
            )

        text_lines += [
            "",
            f"Subtotal: {_money(order.subtotal)}",
            f"Tax: {_money(order.tax)}",
            f"Shipping: {_money(order.shipping)}",
            f"Total: {_money(order.total)}",
            "",
            "Shipping to:",
            *[f"  {line}" for line in _address_lines(order)],
            "",
            f"- The {self.settings.SMTP_FROM_NAME} team",
        ]

        html_body = (
            f"<h2>Thank you for your order, {html.escape(user.name)}!</h2>"
            f"<p>Order number: <strong>{order.order_number}</strong></p>"
            "<table><tr><th>Item</th><th>Qty</th><th>Total</th></tr>"
            + "".join(html_rows)
            + "</table>"
            f"<p>Subtotal: {_money(order.subtotal)}<br>"
            f"Tax: {_money(order.tax)}<br>"
            f"Shipping: {_money(order.shipping)}<br>"
            f"<strong>Total: {_money(order.total)}</strong></p>"
            "<p>Shipping to:<br>"
            + "<br>".join(html.escape(line) for line in _address_lines(order))
            + "</p>"
        )

        return self._send(user.email, subject, "\n".join(text_lines), html_body)

    def send_order_status_update(self, order: Order, user: User, status: str) -> bool:
        subject = f"Order Update - {order.order_number}"
        message = STATUS_MESSAGES.get(status, f"Your order status is now {status}.")

        text_lines = [
            f"Hi {user.name},",
            "",
            f"Order {order.order_number}: {message}",
        ]
        html_body = (
            f"<h2>Order {order.order_number}</h2>"
            f"<p>{message}</p>"
        )

        if status == "shipped" and order.tracking_number:
            text_lines.append(f"Tracking number: {order.tracking_number}")
            tracking = html.escape(order.tracking_number)
            html_body += f"<p>Tracking number: <strong>{tracking}</strong></p>"

        return self._send(user.email, subject, "\n".join(text_lines), html_body)
