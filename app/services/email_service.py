# Transactional emails for the storefront
import os
from typing import Dict, List

import resend
from dotenv import load_dotenv

from ..config import TESTING

load_dotenv()

BRAND_COLOR = "#B5838D"


class EmailService:
    """
    Centralized email service using Resend
    """

    def __init__(self):
        """Initialize Resend with API key"""
        if TESTING or os.getenv("TESTING") in ("1", "True"):
            self.disabled = True
            self.api_key = None
            self.from_email = "test@example.com"
            self.frontend_url = "http://localhost:3000"
            print("⚠️ EmailService running in TEST MODE: no API key required")
            return
        self.disabled = False
        self.api_key = os.getenv("RESEND_API_KEY")
        if not self.api_key:
            raise ValueError("RESEND_API_KEY environment variable is required")

        resend.api_key = self.api_key
        self.from_email = os.getenv("RESEND_FROM_EMAIL", "onboarding@resend.dev")
        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")

    def _layout(self, heading: str, body_html: str) -> str:
        return f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="UTF-8"></head>
        <body style="margin: 0; padding: 0; font-family: 'Segoe UI', Arial, sans-serif; background-color: #f6eef0;">
            <table width="100%" cellpadding="0" cellspacing="0" style="padding: 30px 20px;">
                <tr>
                    <td align="center">
                        <table width="600" cellpadding="0" cellspacing="0" style="background-color: #ffffff; border-radius: 16px; overflow: hidden;">
                            <tr>
                                <td style="background-color: {BRAND_COLOR}; padding: 36px 40px; text-align: center;">
                                    <h1 style="color: #ffffff; margin: 0; font-size: 28px; letter-spacing: 3px;">BIO SCULPTURE</h1>
                                    <h2 style="color: #ffffff; margin: 12px 0 0 0; font-size: 22px; font-weight: 600;">{heading}</h2>
                                </td>
                            </tr>
                            <tr>
                                <td style="padding: 36px 40px; color: #2d3748; font-size: 16px; line-height: 1.7;">
                                    {body_html}
                                </td>
                            </tr>
                        </table>
                    </td>
                </tr>
            </table>
        </body>
        </html>
        """

    def _send(self, to: List[str], subject: str, html: str) -> Dict:
        if self.disabled:
            return {"success": True, "message": "Email sending disabled", "email_id": None}
        try:
            email_response = resend.Emails.send(
                {"from": self.from_email, "to": to, "subject": subject, "html": html}
            )
            return {
                "success": True,
                "message": "Email sent successfully",
                "email_id": email_response.get("id"),
            }
        except Exception as e:
            return {"success": False, "error": str(e)}

    def send_order_confirmation(self, to_email, customer_name, order_id, items, subtotal, discount, total, coupon_code=None) -> Dict:
        """
        Send order confirmation right after checkout

        Args:
            items: list of dicts with name, quantity, price
        """
        rows = "".join(
            f"<tr><td style='padding: 6px 0;'>{item['name']} × {item['quantity']}</td>"
            f"<td style='padding: 6px 0; text-align: right;'>{item['price']:.2f}€</td></tr>"
            for item in items
        )
        discount_row = (
            f"<tr><td>Discount ({coupon_code})</td><td style='text-align: right;'>-{discount:.2f}€</td></tr>"
            if discount
            else ""
        )
        body = f"""
            <p>Hi <strong>{customer_name or 'there'}</strong>,</p>
            <p>Thank you for your order! We've received order <strong>#{order_id}</strong> and will let you know when it ships.</p>
            <table width="100%" style="border-top: 1px solid #e2e8f0; margin-top: 20px;">
                {rows}
                <tr><td style="padding-top: 10px;">Subtotal</td><td style="padding-top: 10px; text-align: right;">{subtotal:.2f}€</td></tr>
                {discount_row}
                <tr><td><strong>Total</strong></td><td style="text-align: right;"><strong>{total:.2f}€</strong></td></tr>
            </table>
            <p style="margin-top: 30px;"><a href="{self.frontend_url}/orders/{order_id}" style="color: {BRAND_COLOR};">View your order</a></p>
        """
        return self._send(
            [to_email],
            f"Order #{order_id} confirmed",
            self._layout("Order Confirmed", body),
        )

    def send_salon_review_result(self, to_email, owner_name, salon_name, approved, rejection_reason=None) -> Dict:
        """
        Tell a salon owner whether their directory listing was approved
        """
        if approved:
            heading = "Salon Approved"
            text = f"Great news! <strong>{salon_name}</strong> is now listed in the Bio Sculpture salon directory."
        else:
            heading = "Salon Not Approved"
            text = (
                f"Unfortunately <strong>{salon_name}</strong> was not approved for the salon directory."
                f"<br><br><em>Reason:</em> {rejection_reason or 'Not specified'}"
            )
        body = f"""
            <p>Hi <strong>{owner_name or 'there'}</strong>,</p>
            <p>{text}</p>
            <p style="margin-top: 30px;"><a href="{self.frontend_url}/salons" style="color: {BRAND_COLOR};">Open the salon directory</a></p>
        """
        return self._send([to_email], f"{heading}: {salon_name}", self._layout(heading, body))

    def send_affiliate_milestone(self, to_email, name, title, message) -> Dict:
        body = f"""
            <p>Hi <strong>{name or 'there'}</strong>,</p>
            <p>{message}</p>
            <p style="margin-top: 30px;"><a href="{self.frontend_url}/account/affiliate" style="color: {BRAND_COLOR};">Go to your affiliate dashboard</a></p>
        """
        return self._send([to_email], title, self._layout(title, body))


def get_email_service():
    """EmailService instance, or None when Resend is not configured."""
    try:
        return EmailService()
    except ValueError as e:
        print(f"⚠️ EmailService unavailable: {e}")
        return None
