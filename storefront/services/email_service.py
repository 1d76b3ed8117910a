# storefront/services/email_service.py
"""
Order confirmation mail. Dispatch is fire-and-forget: it runs after the order
is committed, on a small worker pool kept in ``app.extensions``, and any
failure ends up in the log, never in the response.
"""
import logging
import smtplib
from concurrent import futures
from email.message import EmailMessage

log = logging.getLogger(__name__)


def _render_text(app_name: str, order: dict) -> str:
    money = order.get("money") or {}
    lines = [f"Thank you for shopping with {app_name}!", "", f"Order {order.get('code')} has been placed.", ""]
    for item in order.get("items") or []:
        lines.append(f"  {item['name']} x {item['quantity']} @ {item['price']:.2f}")
    lines += [
        "",
        f"Items:    {money.get('items_price', 0):.2f}",
        f"Shipping: {money.get('shipping_price', 0):.2f}",
        f"Discount: {money.get('discount_amount', 0):.2f}",
        f"Total:    {money.get('total_price', 0):.2f}",
        "",
        f"Payment method: {(order.get('payment') or {}).get('method')}",
    ]
    return "\n".join(lines)


def _render_html(app_name: str, text: str) -> str:
    body = text.replace("\n", "<br>")
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h1 style="color: #333;">{app_name}</h1>'
        f'<div style="color: #555; font-size: 16px; line-height: 1.6;">{body}</div>'
        "</div>"
    )


def send_order_confirmation(config, recipient: str, order: dict):
    host = config.get("MAIL_HOST")
    if not host:
        log.info("MAIL_HOST not configured; skipping confirmation for order %s", order.get("code"))
        return False

    app_name = config.get("APP_NAME", "Storefront")
    text = _render_text(app_name, order)

    msg = EmailMessage()
    msg["Subject"] = f"{app_name}: order {order.get('code')} confirmed"
    msg["From"] = config.get("MAIL_FROM") or config.get("MAIL_USER")
    msg["To"] = recipient
    msg.set_content(text)
    msg.add_alternative(_render_html(app_name, text), subtype="html")

    port = int(config.get("MAIL_PORT", 587))
    smtp_cls = smtplib.SMTP_SSL if port == 465 else smtplib.SMTP
    with smtp_cls(host, port, timeout=10) as smtp:
        if port != 465:
            smtp.starttls()
        if config.get("MAIL_USER"):
            smtp.login(config["MAIL_USER"], config.get("MAIL_PASS") or "")
        smtp.send_message(msg)
    log.info("confirmation mail for order %s sent", order.get("code"))
    return True


def _send_quietly(config, recipient, order):
    try:
        send_order_confirmation(config, recipient, order)
    except Exception:
        log.exception("Failed to send confirmation email for order %s", order.get("code"))


def make_mail_executor(config):
    """Bounded worker pool for outbound mail; ``None`` when mail is sent inline."""
    if config.get("MAIL_DISPATCH") == "inline":
        return None
    return futures.ThreadPoolExecutor(
        max_workers=int(config.get("MAIL_WORKERS", 2)),
        thread_name_prefix="mail",
    )


def dispatch_order_confirmation(app, recipient: str | None, order: dict):
    if not recipient:
        return None
    config = dict(app.config)
    executor = app.extensions.get("mail_executor")
    if executor is None:
        _send_quietly(config, recipient, order)
        return None
    return executor.submit(_send_quietly, config, recipient, order)
