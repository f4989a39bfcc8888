"""
MFA code endpoints.

Trigger surface for the console's authentication flow. The caller is trusted
to pass the subject's user_id; session handling happens upstream.

POST   /mfa/codes                     issue + deliver a one-time code
POST   /mfa/codes/verify              verify (and consume) a one-time code
DELETE /mfa/codes/{user_id}/{method}  cancel a pending code
POST   /mfa/recovery-codes            generate a new recovery set
GET    /mfa/recovery-codes/{user_id}  unused / total counts
POST   /mfa/recovery-codes/verify     verify (and consume) a recovery code
DELETE /mfa/recovery-codes/{user_id}  revoke the whole recovery set

Verify endpoints always answer 200 with a boolean so a client cannot tell a
wrong code from an expired or never-issued one.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from dependencies import (
    get_email_provider,
    get_mfa_code_service,
    get_recovery_code_service,
)
from errors import DeliveryError, ValidationError
from infrastructure.cache.code_store import CodeMethod
from infrastructure.email.protocol import EmailProvider
from schemas.dto.requests.mfa import (
    GenerateRecoveryCodesRequest,
    IssueCodeRequest,
    VerifyCodeRequest,
    VerifyRecoveryCodeRequest,
)
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from schemas.dto.responses.mfa import (
    IssueCodeResponse,
    RecoveryCodesResponse,
    RecoveryCodeStatusResponse,
    VerifyResponse,
)
from services.mfa_code_service import MfaCodeService
from services.recovery_code_service import RecoveryCodeService
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/mfa", tags=["mfa"])


@router.post(
    "/codes",
    status_code=202,
    response_model=IssueCodeResponse,
    responses={
        400: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def issue_code(
    body: IssueCodeRequest,
    service: MfaCodeService = Depends(get_mfa_code_service),
    email_provider: Optional[EmailProvider] = Depends(get_email_provider),
) -> IssueCodeResponse:
    if body.method is CodeMethod.SMS:
        raise ValidationError("SMS delivery is not configured", field="method")
    if body.email is None:
        raise ValidationError("email is required for EMAIL codes", field="email")
    if email_provider is None:
        raise ValidationError("Email delivery is not configured", field="method")

    issued = await service.issue(body.user_id, body.method)
    sent = await email_provider.send_mfa_code_email(
        body.email,
        body.user_name,
        issued.code,
        max(1, service.ttl_seconds // 60),
    )
    if not sent:
        # The user never received it, so it must not stay redeemable. A newer
        # code issued for the same key meanwhile is left alone.
        await service.cancel(body.user_id, body.method, issued.code)
        log.error("mfa_code_delivery_failed", user_id=body.user_id)
        raise DeliveryError("Failed to send verification code")

    return IssueCodeResponse(
        success=True, method=issued.method.value, expires_in=service.ttl_seconds
    )


@router.post("/codes/verify", response_model=VerifyResponse)
async def verify_code(
    body: VerifyCodeRequest,
    service: MfaCodeService = Depends(get_mfa_code_service),
) -> VerifyResponse:
    verified = await service.verify(body.user_id, body.method, body.code)
    return VerifyResponse(verified=verified)


@router.delete("/codes/{user_id}/{method}", response_model=MessageResponse)
async def cancel_code(
    user_id: str,
    method: CodeMethod,
    service: MfaCodeService = Depends(get_mfa_code_service),
) -> MessageResponse:
    await service.cancel(user_id, method)
    return MessageResponse(success=True)


@router.post(
    "/recovery-codes",
    status_code=201,
    response_model=RecoveryCodesResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def generate_recovery_codes(
    body: GenerateRecoveryCodesRequest,
    service: RecoveryCodeService = Depends(get_recovery_code_service),
) -> RecoveryCodesResponse:
    codes = await service.generate(body.user_id, body.count)
    return RecoveryCodesResponse(codes=codes, count=len(codes))


@router.get("/recovery-codes/{user_id}", response_model=RecoveryCodeStatusResponse)
async def recovery_code_status(
    user_id: str,
    service: RecoveryCodeService = Depends(get_recovery_code_service),
) -> RecoveryCodeStatusResponse:
    status = await service.status(user_id)
    return RecoveryCodeStatusResponse(
        unused_count=status.unused_count, total_count=status.total_count
    )


@router.post("/recovery-codes/verify", response_model=VerifyResponse)
async def verify_recovery_code(
    body: VerifyRecoveryCodeRequest,
    service: RecoveryCodeService = Depends(get_recovery_code_service),
) -> VerifyResponse:
    verified = await service.verify(body.user_id, body.code)
    return VerifyResponse(verified=verified)


@router.delete("/recovery-codes/{user_id}", response_model=MessageResponse)
async def revoke_recovery_codes(
    user_id: str,
    service: RecoveryCodeService = Depends(get_recovery_code_service),
) -> MessageResponse:
    deleted = await service.revoke(user_id)
    return MessageResponse(success=True, message=f"{deleted} recovery codes revoked")
