"""
Tests for Jitsi room naming and JaaS token generation.
"""

import pytest
from datetime import datetime, timezone

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from meetspace.core.exceptions import ConfigurationError, ValidationFailed
from meetspace.services.jitsi_service import JitsiService, build_meeting_link, build_room_name


@pytest.fixture(scope="module")
def rsa_keys():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def jaas_env(monkeypatch, rsa_keys):
    monkeypatch.setenv("JAAS_APP_ID", "vpaas-magic-cookie-abc")
    monkeypatch.setenv("JAAS_API_KEY_ID", "vpaas-magic-cookie-abc/4f4910")
    monkeypatch.setenv("JAAS_PRIVATE_KEY", rsa_keys[0].replace("\n", "\\n"))
    return rsa_keys


class TestRoomNames:

    def test_build_room_name(self):
        assert build_room_name(42, 1700000000000) == "event-42-1700000000000"

    def test_room_name_is_sanitized(self):
        assert build_room_name("ab c/1", 5) == "event-ab-c-1-5"

    def test_build_meeting_link(self):
        assert build_meeting_link("app", "event-1-2") == "https://8x8.vc/app/event-1-2"


class TestGenerateToken:
    """Test JaaS token claims and configuration errors."""

    @pytest.mark.asyncio
    async def test_participant_token(self, jaas_env, attendee):
        now = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)

        result = await JitsiService().generate_token("event-1-100", attendee, moderator=False, now=now)

        header = jwt.get_unverified_header(result["token"])
        claims = jwt.decode(result["token"], jaas_env[1], algorithms=["RS256"], audience="jitsi",
                            options={"verify_exp": False, "verify_nbf": False})
        assert header["kid"] == "vpaas-magic-cookie-abc/4f4910"
        assert claims["iss"] == "chat"
        assert claims["sub"] == "vpaas-magic-cookie-abc"
        assert claims["room"] == "event-1-100"
        assert claims["exp"] - int(now.timestamp()) == 3 * 60 * 60
        assert int(now.timestamp()) - claims["nbf"] == 10
        assert claims["context"]["user"]["moderator"] == "false"
        assert claims["context"]["user"]["email"] == "attendee@example.com"
        assert claims["context"]["features"]["recording"] == "false"
        assert result["domain"] == "8x8.vc"

    @pytest.mark.asyncio
    async def test_moderator_token(self, jaas_env, organizer):
        result = await JitsiService().generate_token("event-1-100", organizer, moderator=True)

        claims = jwt.get_unverified_claims(result["token"])
        assert claims["context"]["user"]["moderator"] == "true"
        assert claims["context"]["features"]["livestreaming"] == "true"
        assert result["moderator"] is True

    @pytest.mark.asyncio
    async def test_missing_room(self, jaas_env, attendee):
        with pytest.raises(ValidationFailed) as exc_info:
            await JitsiService().generate_token("", attendee)

        assert exc_info.value.code == "MISSING_ROOM"

    @pytest.mark.asyncio
    async def test_missing_configuration(self, monkeypatch, attendee):
        monkeypatch.setenv("JAAS_APP_ID", "vpaas-magic-cookie-abc")

        with pytest.raises(ConfigurationError) as exc_info:
            await JitsiService().generate_token("event-1-100", attendee)

        assert exc_info.value.code == "JAAS_CONFIG_MISSING"
        assert exc_info.value.details["missing"] == ["JAAS_API_KEY_ID", "JAAS_PRIVATE_KEY"]

    @pytest.mark.asyncio
    async def test_assign_room_without_app_id(self, make_event):
        event = make_event(is_virtual=True)

        assert await JitsiService().assign_room(event) is False
        assert event.room_name is None
