import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from storefront.core.config import settings
from storefront.models.order import Order, PaymentStatus

logger = logging.getLogger(__name__)

def send_email(to_email: str, subject: str, body: str) -> bool:
    if not settings.MAIL_ENABLED:
        logger.info("Mail disabled, skipping '%s' to %s", subject, to_email)
        return False
    try:
        msg = MIMEMultipart('related')
        msg['From'] = settings.MAIL_FROM
        msg['To'] = to_email
        msg['Subject'] = subject
        msg.attach(MIMEText(body, 'html'))

        server_cls = smtplib.SMTP_SSL if settings.MAIL_SSL else smtplib.SMTP
        with server_cls(settings.MAIL_SERVER, settings.MAIL_PORT) as server:
            if not settings.MAIL_SSL:
                server.starttls()
            server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            server.sendmail(settings.MAIL_FROM, to_email, msg.as_string())
        logger.info("Email sent to %s: %s", to_email, subject)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("Failed to send email to %s: %s", to_email, e)
        return False

def _layout(title: str, user_name: str, content: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8"><title>{title}</title></head>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <div style="background: #1F2937; color: white; padding: 20px; text-align: center;">
            <h1>{title}</h1>
        </div>
        <div style="padding: 20px;">
            <h2>Hello {user_name},</h2>
            {content}
            <p>Best regards,<br>Team Sking</p>
        </div>
    </body>
    </html>
    """

def format_order_items_for_email(order: Order) -> str:
    rows = ""
    for item in order.items:
        variant = f" ({item.variant_name})" if item.variant_name else ""
        rows += f"""
        <tr>
            <td style="padding: 6px 0;">{item.product_name}{variant} x {item.quantity}</td>
            <td style="padding: 6px 0; text-align: right;">&#8377;{item.price * item.quantity:.2f}</td>
        </tr>"""
    return f'<table role="presentation" width="100%">{rows}</table>'

def format_address_for_email(address: dict) -> str:
    return (
        f"{address.get('name', '')}<br>{address.get('street', '')}<br>"
        f"{address.get('city', '')}, {address.get('state', '')} {address.get('postal_code', '')}<br>"
        f"{address.get('phone_number', '')}"
    )

def send_otp_email(to_email: str, user_name: str, otp_code: str, purpose: str = "verify your email"):
    body = _layout(
        "Your verification code",
        user_name,
        f"<p>Use <b>{otp_code}</b> to {purpose}. It expires in {settings.OTP_EXPIRE_MINUTES} minutes.</p>",
    )
    send_email(to_email, "Your Sking verification code", body)

def send_order_success_email(to_email: str, user_name: str, order: Order):
    discount_row = ""
    if order.discount_amount > 0:
        discount_row = f"<p>Discount ({order.discount_code}): -&#8377;{order.discount_amount:.2f}</p>"
    content = f"""
        <p>Your order <strong>#{order.order_number}</strong> is confirmed.</p>
        {format_order_items_for_email(order)}
        <p>Subtotal: &#8377;{order.total_amount:.2f}</p>
        <p>Shipping: &#8377;{order.shipping_fee:.2f}</p>
        {discount_row}
        <p><strong>Total: &#8377;{order.final_amount:.2f}</strong></p>
        <p>Delivering to:<br>{format_address_for_email(order.shipping_address or {})}</p>
    """
    send_email(to_email, f"Order Confirmed - Sking #{order.order_number}", _layout("Order confirmed", user_name, content))

def send_shipping_notification_email(to_email: str, user_name: str, order: Order):
    content = f"""
        <p>Great news! Your order <strong>#{order.order_number}</strong> has been shipped.</p>
        <p><a href="{settings.FRONTEND_URL}/orders/{order.id}">Track your order</a></p>
    """
    send_email(to_email, f"Your Order #{order.order_number} Has Been Shipped - Sking", _layout("Your order is on its way", user_name, content))

def send_delivery_email(to_email: str, user_name: str, order: Order):
    content = f"""
        <p>Your order <strong>#{order.order_number}</strong> has been delivered.</p>
        {format_order_items_for_email(order)}
        <p>We'd love to hear what you think.</p>
    """
    send_email(to_email, f"Your Order #{order.order_number} Has Been Delivered - Sking", _layout("Delivered", user_name, content))

def send_order_cancellation_email(to_email: str, user_name: str, order: Order, reason: str):
    refund_note = ""
    if order.payment_status == PaymentStatus.REFUNDED:
        refund_note = f"<p>A refund of &#8377;{order.final_amount:.2f} has been initiated to your original payment method.</p>"
    content = f"""
        <p>Your order <strong>#{order.order_number}</strong> has been cancelled.</p>
        <p>Reason: {reason}</p>
        {format_order_items_for_email(order)}
        {refund_note}
    """
    send_email(to_email, f"Order Cancelled - Sking #{order.order_number}", _layout("Order cancelled", user_name, content))
