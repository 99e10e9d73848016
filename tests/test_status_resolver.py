"""
Tests for connection status reconciliation.
"""

from datetime import datetime, timezone

from connectors.schemas import CredentialRecord, ServiceName
from connectors.status import resolve_status, settings_from_payload, settings_keys


def _record(**payload) -> CredentialRecord:
    base = {"access_token": "tok", "access_token_secret": "sec", "user_id": "42", "username": "agentbot"}
    base.update(payload)
    return CredentialRecord(principal_id="p-1", service=ServiceName.TWITTER, payload=base)


class TestResolveStatus:
    def test_no_credential_is_disconnected(self):
        status = resolve_status(ServiceName.TWITTER, None, None)
        assert not status.is_connected
        assert not status.is_pending

    def test_no_credential_never_pending_even_with_settings(self):
        status = resolve_status(
            ServiceName.TWITTER,
            None,
            {"TWITTER_ACCESS_TOKEN": "something-else"},
        )
        assert not status.is_connected
        assert not status.is_pending

    def test_host_without_opinion_is_connected(self):
        status = resolve_status(ServiceName.TWITTER, _record(), None)
        assert status.is_connected
        assert not status.is_pending
        assert status.username == "agentbot"
        assert status.user_id == "42"

    def test_matching_settings_not_pending(self):
        status = resolve_status(
            ServiceName.TWITTER,
            _record(),
            {"TWITTER_ACCESS_TOKEN": "tok", "TWITTER_ACCESS_TOKEN_SECRET": "sec"},
        )
        assert status.is_connected
        assert not status.is_pending

    def test_differing_setting_is_pending(self):
        status = resolve_status(
            ServiceName.TWITTER,
            _record(),
            {"TWITTER_ACCESS_TOKEN": "old-tok", "TWITTER_ACCESS_TOKEN_SECRET": "sec"},
        )
        assert status.is_connected
        assert status.is_pending

    def test_absent_settings_cannot_trigger_pending(self):
        status = resolve_status(
            ServiceName.TWITTER,
            _record(),
            {"TWITTER_ACCESS_TOKEN": None, "TWITTER_ACCESS_TOKEN_SECRET": ""},
        )
        assert status.is_connected
        assert not status.is_pending

    def test_unmapped_settings_are_ignored(self):
        status = resolve_status(ServiceName.TWITTER, _record(), {"SOME_OTHER_KEY": "x"})
        assert not status.is_pending

    def test_last_checked_uses_given_time(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        status = resolve_status(ServiceName.TWITTER, None, None, now=now)
        assert status.last_checked == now


class TestSettingsMapping:
    def test_keys(self):
        assert settings_keys(ServiceName.TWITTER) == ["TWITTER_ACCESS_TOKEN", "TWITTER_ACCESS_TOKEN_SECRET"]

    def test_payload_projection(self):
        settings = settings_from_payload(ServiceName.TWITTER, {"access_token": "a", "access_token_secret": "b", "username": "x"})
        assert settings == {"TWITTER_ACCESS_TOKEN": "a", "TWITTER_ACCESS_TOKEN_SECRET": "b"}
