"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Everything they return is built once in the app
lifespan and kept on app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from infrastructure.email.protocol import EmailProvider
from services.mfa_code_service import MfaCodeService
from services.recovery_code_service import RecoveryCodeService


def get_mfa_code_service(request: Request) -> MfaCodeService:
    return request.app.state.mfa_code_service


def get_recovery_code_service(request: Request) -> RecoveryCodeService:
    return request.app.state.recovery_code_service


def get_email_provider(request: Request) -> Optional[EmailProvider]:
    """Return the email provider, or None when email delivery is not configured."""
    return getattr(request.app.state, "email_provider", None)
