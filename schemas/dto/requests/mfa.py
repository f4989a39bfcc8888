"""
Request DTOs for MFA code endpoints.

IssueCodeRequest             POST /mfa/codes
VerifyCodeRequest            POST /mfa/codes/verify
GenerateRecoveryCodesRequest  POST /mfa/recovery-codes
VerifyRecoveryCodeRequest    POST /mfa/recovery-codes/verify
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from infrastructure.cache.code_store import CodeMethod


class IssueCodeRequest(BaseModel):
    """Request body for POST /mfa/codes.

    ``email`` is required when ``method`` is EMAIL.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)
    method: CodeMethod
    email: Optional[EmailStr] = None
    user_name: Optional[str] = None


class VerifyCodeRequest(BaseModel):
    """Request body for POST /mfa/codes/verify."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)
    method: CodeMethod
    code: str = Field(min_length=1, max_length=32)


class GenerateRecoveryCodesRequest(BaseModel):
    """Request body for POST /mfa/recovery-codes.

    ``count`` falls back to the configured set size when omitted.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)
    count: Optional[int] = None


class VerifyRecoveryCodeRequest(BaseModel):
    """Request body for POST /mfa/recovery-codes/verify.

    ``code`` may be entered with or without dashes, in any case.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=64)
