"""Unit tests for DownloadGate.

Covers:
- Token resolution and its read-time state.
- Quota: the count only moves after a URL was signed, never past the limit.
- Expiry is checked before quota.
- Storage failures leave the count untouched.
- A concurrent redemption taking the last download first.
- Token strings stay out of the logs.
"""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from modules.core.exceptions import StorageNotConfigured, StorageUnavailable
from modules.downloads.constants import TokenState
from modules.downloads.exceptions import (
    DownloadLimitExceeded,
    InvalidFileIndex,
    TokenExpired,
    TokenNotFound,
)
from modules.downloads.models import DownloadToken, generate_token
from modules.downloads.services import DownloadGate

pytestmark = pytest.mark.unit


@pytest.fixture()
def token(paid_order):
    return paid_order.downloads.get()


def _set(token, **fields):
    DownloadToken.objects.filter(id=token.id).update(**fields)
    token.refresh_from_db()
    return token


# ===========================================================================
# resolve_token
# ===========================================================================


class TestResolveToken:
    def test_describes_entitlement(self, gate, token, paid_order):
        details = gate.resolve_token(token.token)

        assert details.order_number == paid_order.order_number
        assert details.customer_email == paid_order.customer_email
        assert details.product_id == token.product_id
        assert details.download_count == 0
        assert details.max_downloads == 5
        assert details.remaining_downloads == 5
        assert details.state == TokenState.VALID_UNUSED
        assert [f.index for f in details.files] == [0, 1]
        assert [f.name for f in details.files] == ["part-0.zip", "part-1.zip"]

    def test_files_carry_no_storage_key(self, gate, token):
        payload = gate.resolve_token(token.token).model_dump()
        assert "storage_key" not in str(payload)

    def test_partially_used_state(self, gate, token):
        _set(token, download_count=2)
        details = gate.resolve_token(token.token)
        assert details.state == TokenState.VALID_PARTIALLY_USED
        assert details.remaining_downloads == 3

    def test_exhausted_token_still_resolves(self, gate, token):
        _set(token, download_count=5)
        details = gate.resolve_token(token.token)
        assert details.state == TokenState.EXHAUSTED
        assert details.remaining_downloads == 0

    def test_unknown_token(self, gate):
        with pytest.raises(TokenNotFound):
            gate.resolve_token(generate_token())

    def test_malformed_token(self, gate):
        with pytest.raises(TokenNotFound):
            gate.resolve_token("not-a-token")

    def test_expired_token(self, gate, token):
        with freeze_time(token.expires_at + timedelta(seconds=1)):
            with pytest.raises(TokenExpired):
                gate.resolve_token(token.token)

    def test_valid_at_the_expiry_instant(self, gate, token):
        with freeze_time(token.expires_at):
            assert gate.resolve_token(token.token).state == TokenState.VALID_UNUSED


# ===========================================================================
# retrieve_file
# ===========================================================================


class TestRetrieveFile:
    def test_signs_url_and_counts(self, gate, token, storage):
        link = gate.retrieve_file(token.token, 1)

        assert link.url.startswith("https://storage.example.com/")
        assert link.filename == "part-1.zip"
        assert link.size_bytes == 2048
        assert link.mime_type == "application/zip"
        assert link.download_count == 1
        assert link.remaining_downloads == 4
        assert link.url_expires_in_seconds == 3600
        assert storage.signed == [f"products/{token.product_id}/part-1.zip"]

        token.refresh_from_db()
        assert token.download_count == 1
        assert token.last_downloaded_at is not None

    def test_last_download_reaches_limit(self, gate, token):
        _set(token, download_count=4)

        link = gate.retrieve_file(token.token, 0)

        assert link.download_count == 5
        assert link.remaining_downloads == 0
        token.refresh_from_db()
        assert token.download_count == 5

    def test_exhausted_token_rejected(self, gate, token, storage):
        _set(token, download_count=5)

        with pytest.raises(DownloadLimitExceeded):
            gate.retrieve_file(token.token, 0)

        token.refresh_from_db()
        assert token.download_count == 5
        assert storage.signed == []

    def test_every_download_counts(self, gate, token):
        for expected in range(1, 6):
            assert gate.retrieve_file(token.token, 0).download_count == expected
        with pytest.raises(DownloadLimitExceeded):
            gate.retrieve_file(token.token, 0)

    def test_expired_token_with_quota_left(self, gate, token):
        with freeze_time(token.expires_at + timedelta(seconds=1)):
            with pytest.raises(TokenExpired):
                gate.retrieve_file(token.token, 0)
        token.refresh_from_db()
        assert token.download_count == 0

    def test_expiry_wins_over_exhaustion(self, gate, token):
        _set(token, download_count=5, expires_at=timezone.now() - timedelta(minutes=1))
        with pytest.raises(TokenExpired):
            gate.retrieve_file(token.token, 0)

    @pytest.mark.parametrize("index", [-1, 2, 99])
    def test_invalid_file_index(self, gate, token, index):
        with pytest.raises(InvalidFileIndex):
            gate.retrieve_file(token.token, index)
        token.refresh_from_db()
        assert token.download_count == 0

    def test_unknown_token(self, gate):
        with pytest.raises(TokenNotFound):
            gate.retrieve_file(generate_token(), 0)

    def test_storage_failure_keeps_count(self, gate, token, storage):
        storage.fail_sign = True

        with pytest.raises(StorageUnavailable):
            gate.retrieve_file(token.token, 0)

        token.refresh_from_db()
        assert token.download_count == 0

    def test_storage_not_configured(self, token, token_repository, product_repository):
        gate = DownloadGate(
            token_repository=token_repository,
            product_repository=product_repository,
            storage=None,
        )
        with pytest.raises(StorageNotConfigured):
            gate.retrieve_file(token.token, 0)
        token.refresh_from_db()
        assert token.download_count == 0

    def test_custom_url_ttl(self, token, token_repository, product_repository, storage):
        gate = DownloadGate(
            token_repository=token_repository,
            product_repository=product_repository,
            storage=storage,
            signed_url_ttl=timedelta(minutes=5),
        )
        assert gate.retrieve_file(token.token, 0).url_expires_in_seconds == 300


class TestConcurrentRedemption:
    def test_losing_the_last_download_race(self, gate, token, storage):
        _set(token, download_count=4)
        # Another request takes the last download while this one is signing.
        storage.on_sign = lambda: DownloadToken.objects.filter(id=token.id).update(
            download_count=5
        )

        with pytest.raises(DownloadLimitExceeded):
            gate.retrieve_file(token.token, 0)

        token.refresh_from_db()
        assert token.download_count == 5

    def test_token_expiring_while_signing(self, gate, token, storage):
        storage.on_sign = lambda: DownloadToken.objects.filter(id=token.id).update(
            expires_at=timezone.now() - timedelta(seconds=1)
        )

        with pytest.raises(TokenExpired):
            gate.retrieve_file(token.token, 0)

        token.refresh_from_db()
        assert token.download_count == 0


class TestTokenNeverLogged:
    def test_resolve_and_retrieve(self, gate, token, caplog):
        with caplog.at_level(logging.INFO):
            gate.resolve_token(token.token)
            gate.retrieve_file(token.token, 0)
            with pytest.raises(InvalidFileIndex):
                gate.retrieve_file(token.token, 7)

        assert caplog.records
        assert all(token.token not in record.getMessage() for record in caplog.records)
