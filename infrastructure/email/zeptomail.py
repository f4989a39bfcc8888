"""ZeptoMail implementation of EmailProvider.

Sends the MFA verification code email over the ZeptoMail HTTP API with an
httpx.AsyncClient. Pass a client to share one; otherwise the provider creates
its own and closes it in aclose(). The HTML body is rendered from a Jinja2
template.
"""

import os
from typing import Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: Optional[httpx.AsyncClient] = None,
        app_name: str = "mfa-codes",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=5.0)
        self._app_name = app_name
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            payload["textbody"] = text_body

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", to_email=to_email)
            return True
        log.error(
            "email_sent_failed",
            to_email=to_email,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False

    async def send_mfa_code_email(
        self,
        email: str,
        user_name: Optional[str],
        otp_code: str,
        expires_in_minutes: int,
    ) -> bool:
        subject = f"Your verification code - {self._app_name}"
        template = self._jinja.get_template("mfa_code.html")
        html_body = template.render(
            otp_code=otp_code,
            user_name=user_name,
            expires_in_minutes=expires_in_minutes,
            app_name=self._app_name,
        )
        text_body = (
            f"Your verification code\n\n"
            f"Hello{f' {user_name}' if user_name else ''},\n\n"
            f"Your verification code is: {otp_code}\n\n"
            f"This code expires in {expires_in_minutes} minutes and can be used once.\n"
            f"If you did not try to sign in, you can ignore this email."
        )
        return await self._send(email, user_name, subject, html_body, text_body)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
