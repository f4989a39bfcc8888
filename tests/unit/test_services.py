"""Unit tests for MfaCodeService and RecoveryCodeService."""

import asyncio

import pytest

from config import MfaSettings
from errors import ForbiddenError, GeneratorUnavailableError, ValidationError
from infrastructure.cache.code_store import CodeMethod, InMemoryCodeStore
from services.mfa_code_service import MfaCodeService
from services.recovery_code_service import RecoveryCodeService


# ── MfaCodeService ────────────────────────────────────────────────────────────


@pytest.fixture
def mfa_service(clock, mfa_settings):
    store = InMemoryCodeStore(ttl_seconds=mfa_settings.mfa_code_ttl_seconds, clock=clock)
    return MfaCodeService(store, mfa_settings)


class TestMfaCodeService:
    async def test_issue_returns_six_digit_code(self, mfa_service, clock):
        issued = await mfa_service.issue("user-1", "EMAIL")
        assert issued.method is CodeMethod.EMAIL
        assert len(issued.code) == 6 and issued.code.isdigit()
        assert (issued.expires_at - clock.now).total_seconds() == 600

    async def test_issue_then_verify_once(self, mfa_service):
        issued = await mfa_service.issue("user-1", CodeMethod.SMS)
        assert await mfa_service.verify("user-1", CodeMethod.SMS, issued.code) is True
        assert await mfa_service.verify("user-1", CodeMethod.SMS, issued.code) is False

    async def test_verify_ignores_surrounding_whitespace(self, mfa_service):
        issued = await mfa_service.issue("user-1", CodeMethod.EMAIL)
        assert await mfa_service.verify(
            "user-1", CodeMethod.EMAIL, f" {issued.code}\n"
        )

    async def test_expired_code_rejected(self, mfa_service, clock):
        issued = await mfa_service.issue("user-1", CodeMethod.EMAIL)
        clock.advance(minutes=11)
        assert await mfa_service.verify("user-1", CodeMethod.EMAIL, issued.code) is False

    async def test_cancel(self, mfa_service):
        issued = await mfa_service.issue("user-1", CodeMethod.EMAIL)
        await mfa_service.cancel("user-1", CodeMethod.EMAIL)
        assert await mfa_service.verify("user-1", CodeMethod.EMAIL, issued.code) is False

    async def test_failed_delivery_cancel_spares_newer_code(self, mfa_service, mocker):
        mocker.patch(
            "services.mfa_code_service.generate_mfa_code",
            side_effect=["111111", "222222"],
        )
        older = await mfa_service.issue("user-1", CodeMethod.EMAIL)
        newer = await mfa_service.issue("user-1", CodeMethod.EMAIL)

        await mfa_service.cancel("user-1", CodeMethod.EMAIL, older.code)

        assert await mfa_service.verify("user-1", CodeMethod.EMAIL, newer.code) is True

    async def test_unknown_method_rejected_on_issue(self, mfa_service):
        with pytest.raises(ValueError):
            await mfa_service.issue("user-1", "PIGEON")

    async def test_generator_failure_aborts_issue(self, mfa_service, mocker):
        mocker.patch(
            "shared.generators.secrets.randbelow", side_effect=NotImplementedError
        )
        with pytest.raises(GeneratorUnavailableError):
            await mfa_service.issue("user-1", CodeMethod.EMAIL)

    async def test_uses_configured_range(self, clock):
        settings = MfaSettings(mfa_code_min=1000, mfa_code_max=9999)
        service = MfaCodeService(InMemoryCodeStore(clock=clock), settings)
        issued = await service.issue("user-1", CodeMethod.EMAIL)
        assert 1000 <= int(issued.code) <= 9999
        assert len(issued.code) == 4


# ── RecoveryCodeService ───────────────────────────────────────────────────────


@pytest.fixture
def repo(recovery_repo):
    return recovery_repo


@pytest.fixture
def recovery_service(repo, mfa_settings):
    return RecoveryCodeService(repo, mfa_settings)


class TestRecoveryCodeGenerate:
    async def test_default_count_and_hashed_storage(self, recovery_service, repo):
        codes = await recovery_service.generate("user-1")
        assert len(codes) == 10
        assert len(repo.docs) == 10
        stored = {d.code_hash for d in repo.docs}
        for code in codes:
            assert code not in stored
            assert code.replace("-", "") not in "".join(stored)

    async def test_explicit_count(self, recovery_service):
        assert len(await recovery_service.generate("user-1", count=3)) == 3

    @pytest.mark.parametrize("count", [0, 51], ids=["zero", "over_max"])
    async def test_count_out_of_bounds(self, recovery_service, count):
        with pytest.raises(ValidationError):
            await recovery_service.generate("user-1", count=count)

    async def test_new_set_replaces_old(self, recovery_service):
        old = await recovery_service.generate("user-1", count=2)
        await recovery_service.generate("user-1", count=2)
        assert await recovery_service.verify("user-1", old[0]) is False
        status = await recovery_service.status("user-1")
        assert (status.unused_count, status.total_count) == (2, 2)

    async def test_disabled_feature(self, repo):
        service = RecoveryCodeService(repo, MfaSettings(recovery_codes_enabled=False))
        with pytest.raises(ForbiddenError):
            await service.generate("user-1")
        assert await service.verify("user-1", "ABCD-EF01-2345") is False


class TestRecoveryCodeVerify:
    async def test_each_code_single_use(self, recovery_service):
        codes = await recovery_service.generate("user-1", count=2)
        assert await recovery_service.verify("user-1", codes[0]) is True
        assert await recovery_service.verify("user-1", codes[0]) is False
        assert await recovery_service.verify("user-1", codes[1]) is True

    async def test_accepts_undashed_lowercase_entry(self, recovery_service):
        codes = await recovery_service.generate("user-1", count=1)
        assert await recovery_service.verify("user-1", codes[0].replace("-", "").lower())

    async def test_wrong_code_consumes_nothing(self, recovery_service):
        await recovery_service.generate("user-1", count=2)
        assert await recovery_service.verify("user-1", "0000-0000-0001") is False
        status = await recovery_service.status("user-1")
        assert status.unused_count == 2

    async def test_codes_scoped_to_user(self, recovery_service):
        codes = await recovery_service.generate("user-1", count=1)
        assert await recovery_service.verify("user-2", codes[0]) is False

    async def test_no_codes_returns_false(self, recovery_service):
        assert await recovery_service.verify("user-1", "ABCD-EF01-2345") is False

    async def test_lost_consume_race_returns_false(self, recovery_service, repo, mocker):
        codes = await recovery_service.generate("user-1", count=1)
        mocker.patch.object(repo, "mark_used", return_value=False)
        assert await recovery_service.verify("user-1", codes[0]) is False

    async def test_concurrent_use_of_same_code(self, recovery_service):
        codes = await recovery_service.generate("user-1", count=1)
        results = await asyncio.gather(
            *(recovery_service.verify("user-1", codes[0]) for _ in range(3))
        )
        assert results.count(True) == 1


class TestRecoveryCodeStatusAndRevoke:
    async def test_status_counts(self, recovery_service):
        codes = await recovery_service.generate("user-1", count=4)
        await recovery_service.verify("user-1", codes[2])
        status = await recovery_service.status("user-1")
        assert (status.unused_count, status.total_count) == (3, 4)

    async def test_status_for_user_without_codes(self, recovery_service):
        status = await recovery_service.status("nobody")
        assert (status.unused_count, status.total_count) == (0, 0)

    async def test_revoke_removes_set(self, recovery_service):
        codes = await recovery_service.generate("user-1", count=2)
        assert await recovery_service.revoke("user-1") == 2
        assert await recovery_service.verify("user-1", codes[0]) is False
