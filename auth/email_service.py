"""Email service for sending verification codes and reset links."""

import asyncio
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional
from urllib.parse import urlencode

import httpx

from .models import PrincipalKind

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
PRODUCT_NAME = "chatdesk"

_LAYOUT = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; }}
        .container {{ max-width: 420px; margin: 40px auto; padding: 20px; }}
        .code {{ font-size: 32px; font-weight: bold; letter-spacing: 4px;
                 color: #333; background: #f5f5f5; padding: 16px;
                 text-align: center; border-radius: 8px; margin: 20px 0; }}
        .button {{ background-color: #007bff; color: white; padding: 10px 20px;
                   text-decoration: none; border-radius: 5px; font-weight: bold; }}
        .footer {{ color: #666; font-size: 12px; margin-top: 30px; }}
    </style>
</head>
<body>
    <div class="container">
        <h2>{title}</h2>
        <p>{intro}</p>
        <div class="code">{code}</div>
        <p>This code will expire in {minutes} minutes.</p>
        {link}
        <p class="footer">If you didn't request this code, you can safely ignore this email.</p>
    </div>
</body>
</html>
"""


class EmailService:
    """Sends email through Resend, SMTP, or the console, in that order of preference."""

    def __init__(
        self,
        resend_api_key: Optional[str] = None,
        from_email: str = "no-reply@chatdesk.local",
        alert_email: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        app_base_url: str = "http://localhost:3000",
        user_code_expiry_minutes: int = 15,
        admin_code_expiry_minutes: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize email service. transport overrides the HTTP transport for Resend."""
        self._resend_api_key = resend_api_key
        self._from_email = from_email
        self._alert_email = alert_email or from_email
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._app_base_url = app_base_url.rstrip("/")
        self._user_code_expiry_minutes = user_code_expiry_minutes
        self._admin_code_expiry_minutes = admin_code_expiry_minutes
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport=None) -> "EmailService":
        return cls(
            resend_api_key=settings.resend_api_key,
            from_email=settings.email_from,
            alert_email=settings.alert_email,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            app_base_url=settings.app_base_url,
            user_code_expiry_minutes=settings.user_code_expiry_minutes,
            admin_code_expiry_minutes=settings.admin_code_expiry_minutes,
            transport=transport,
        )

    @property
    def smtp_configured(self) -> bool:
        return bool(self._smtp_host and self._smtp_user and self._smtp_password)

    @property
    def backend(self) -> str:
        if self._resend_api_key:
            return "resend"
        if self.smtp_configured:
            return "smtp"
        return "console"

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str = "") -> bool:
        """
        Deliver one email.
        Returns True if sent. On failure logs, fires an operator alert
        (best effort) and returns False. Never raises.
        """
        if self.backend == "console":
            # Console fallback - print the message
            print(f"\n{'='*50}")
            print(f"EMAIL to {to}: {subject}")
            print(text_body or html_body)
            print(f"{'='*50}\n")
            logger.info(f"Email '{subject}' for {to} printed to console (no provider configured)")
            return True

        try:
            await self._deliver(to, subject, html_body, text_body)
            logger.info(f"Email '{subject}' sent to {to} via {self.backend}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {to}: {e}")
            await self._send_error_alert(e)
            return False

    async def _deliver(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        if self.backend == "resend":
            await self._send_via_resend(to, subject, html_body, text_body)
        else:
            await asyncio.to_thread(self._send_via_smtp, to, subject, html_body, text_body)

    async def _send_via_resend(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        payload = {
            "from": self._from_email,
            "to": [to],
            "subject": subject,
            "html": html_body,
        }
        if text_body:
            payload["text"] = text_body

        async with httpx.AsyncClient(transport=self._transport, timeout=30.0) as client:
            response = await client.post(
                RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self._resend_api_key}"},
            )
            response.raise_for_status()

    def _send_via_smtp(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._from_email
        msg["To"] = to
        if text_body:
            msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(self._smtp_host, self._smtp_port) as server:
            server.starttls()
            server.login(self._smtp_user, self._smtp_password)
            server.sendmail(self._from_email, to, msg.as_string())

    async def _send_error_alert(self, error: Exception) -> None:
        """Tell the operator that delivery failed. Failures here are only logged."""
        try:
            await self._deliver(
                self._alert_email,
                "Email Sending Error Alert",
                f"<p><strong>Error:</strong> {html.escape(str(error) or 'Unknown error occurred')}</p>",
                f"Error: {error}",
            )
        except Exception as alert_error:
            logger.error(f"Failed to send email error alert: {alert_error}")

    # ==================== Templates ====================

    async def send_verification_code(self, email: str, code: str) -> bool:
        """Send signup verification code to email."""
        link = f"{self._app_base_url}/verify?{urlencode({'email': email})}"
        body = _LAYOUT.format(
            title="Verify your email",
            intro=f"Welcome to {PRODUCT_NAME}! Enter this code to verify your email:",
            code=code,
            minutes=self._user_code_expiry_minutes,
            link=f'<p><a class="button" href="{html.escape(link)}">Verify Your Email</a></p>',
        )
        text = (
            f"Your verification code is: {code}\n\n"
            f"This code will expire in {self._user_code_expiry_minutes} minutes.\n"
            f"Verify at: {link}\n"
        )
        return await self.send_email(email, f"Verify your {PRODUCT_NAME} account", body, text)

    async def send_password_reset_code(self, email: str, code: str, kind: PrincipalKind) -> bool:
        """Send password reset code and link to email."""
        path = "/admin/reset-password" if kind == PrincipalKind.ADMIN else "/reset-password"
        minutes = (
            self._admin_code_expiry_minutes
            if kind == PrincipalKind.ADMIN
            else self._user_code_expiry_minutes
        )
        link = f"{self._app_base_url}{path}?{urlencode({'email': email, 'code': code})}"
        body = _LAYOUT.format(
            title="Reset your password",
            intro="You have requested to reset your password. Your verification code is:",
            code=code,
            minutes=minutes,
            link=f'<p><a class="button" href="{html.escape(link)}">Reset Password</a></p>',
        )
        text = (
            f"Your password reset code is: {code}\n\n"
            f"This code will expire in {minutes} minutes.\n"
            f"Reset at: {link}\n"
        )
        return await self.send_email(email, "Reset your password", body, text)
