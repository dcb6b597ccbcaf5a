"""
Unit tests for ProviderSettingsService.
"""

import pytest

from app.domains.provider.service import ProviderSettingsService
from app.exceptions.base import InvalidParameterError
from app.exceptions.provider import ProviderNotFoundError
from app.schemas.provider import ProviderSettingsUpdate


@pytest.fixture
def service(test_db, registry):
    return ProviderSettingsService(test_db, registry)


class TestProviderSettingsService:
    """Test cases for reading and writing per-user provider settings."""

    @pytest.mark.asyncio
    async def test_list_providers_without_records(self, service, test_user):
        providers = await service.list_providers(test_user.id)

        assert [p.id for p in providers] == ["fake"]
        fake = providers[0]
        assert fake.enabled is True
        assert [s.key for s in fake.settings] == ["api_key", "style"]
        assert all(s.value is None for s in fake.settings)
        assert [m.id for m in fake.models] == ["fake-t2i", "fake-i2i", "fake-multi"]

    @pytest.mark.asyncio
    async def test_get_provider_with_record(self, service, test_user, fake_provider_settings):
        provider = await service.get_provider("fake", test_user.id)

        values = {s.key: s.value for s in provider.settings}
        assert values == {"api_key": "sk-test", "style": None}

    @pytest.mark.asyncio
    async def test_get_unknown_provider(self, service, test_user):
        with pytest.raises(ProviderNotFoundError):
            await service.get_provider("nope", test_user.id)

    @pytest.mark.asyncio
    async def test_update_creates_record(self, service, test_user):
        response = await service.update_provider(
            "fake", test_user.id, ProviderSettingsUpdate(settings={"api_key": "sk-new"})
        )

        assert {s.key: s.value for s in response.settings}["api_key"] == "sk-new"
        assert await service.get_effective_settings("fake", test_user.id) == {"api_key": "sk-new", "style": "photo"}

    @pytest.mark.asyncio
    async def test_update_merges_and_removes(self, service, test_user, fake_provider_settings):
        await service.update_provider("fake", test_user.id, ProviderSettingsUpdate(settings={"style": "anime"}))
        await service.update_provider("fake", test_user.id, ProviderSettingsUpdate(settings={"api_key": None}))

        record = await service.get_record("fake", test_user.id)
        assert record.settings == {"style": "anime"}

    @pytest.mark.asyncio
    async def test_update_unknown_key(self, service, test_user):
        with pytest.raises(InvalidParameterError) as exc_info:
            await service.update_provider("fake", test_user.id, ProviderSettingsUpdate(settings={"color": "red"}))

        assert exc_info.value.details["keys"] == ["color"]

    @pytest.mark.asyncio
    async def test_update_enabled(self, service, test_user, fake_provider_settings):
        response = await service.update_provider("fake", test_user.id, ProviderSettingsUpdate(enabled=False))

        assert response.enabled is False
        assert await service.is_enabled("fake", test_user.id) is False

    @pytest.mark.asyncio
    async def test_is_enabled_defaults(self, service, test_user):
        assert await service.is_enabled("fake", test_user.id) is True

    @pytest.mark.asyncio
    async def test_effective_settings_are_per_user(self, service, test_user, test_user_2, fake_provider_settings):
        assert await service.get_effective_settings("fake", test_user_2.id) == {"style": "photo"}
