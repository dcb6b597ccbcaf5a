"""
Unit tests for the provider capability contract.

Covers settings validation against a provider's schema, generation mode
selection, and catalog lookups.
"""

import pytest

from app.exceptions.provider import ModelNotFoundError, ProviderConfigInvalidError
from app.providers.base import (
    Ability,
    GenerateRequest,
    GenerateResult,
    SettingsItem,
    SettingType,
    choose_ability,
    parse_settings,
)
from models.generation import ErrorReason
from tests.fakes import FakeProvider

SCHEMA = [
    SettingsItem(key="api_key", type=SettingType.PASSWORD, required=True),
    SettingsItem(key="base_url", type=SettingType.URL, required=False, default_value="https://api.example.com/v1"),
    SettingsItem(key="guidance", type=SettingType.NUMBER, required=False, default_value=3.5),
    SettingsItem(key="safe_mode", type=SettingType.BOOLEAN, required=False, default_value=True),
]


class TestParseSettings:
    """Test cases for parse_settings."""

    def test_defaults_applied(self):
        parsed = parse_settings({"api_key": "sk-1"}, SCHEMA)

        assert parsed.api_key == "sk-1"
        assert str(parsed.base_url).startswith("https://api.example.com/v1")
        assert parsed.guidance == 3.5
        assert parsed.safe_mode is True

    def test_supplied_values_override_defaults(self):
        parsed = parse_settings(
            {"api_key": "sk-1", "base_url": "https://proxy.local/v1", "guidance": "7", "safe_mode": False},
            SCHEMA,
        )

        assert str(parsed.base_url).startswith("https://proxy.local/v1")
        assert parsed.guidance == 7.0
        assert parsed.safe_mode is False

    def test_missing_required_key(self):
        with pytest.raises(ProviderConfigInvalidError) as exc_info:
            parse_settings({}, SCHEMA)

        assert exc_info.value.details["keys"] == ["api_key"]

    @pytest.mark.parametrize("value", ["", "   "])
    def test_empty_required_key(self, value):
        with pytest.raises(ProviderConfigInvalidError):
            parse_settings({"api_key": value}, SCHEMA)

    def test_none_treated_as_missing(self):
        with pytest.raises(ProviderConfigInvalidError):
            parse_settings({"api_key": None}, SCHEMA)

    def test_none_settings_mapping(self):
        with pytest.raises(ProviderConfigInvalidError):
            parse_settings(None, SCHEMA)

    def test_mistyped_number(self):
        with pytest.raises(ProviderConfigInvalidError) as exc_info:
            parse_settings({"api_key": "sk-1", "guidance": "a lot"}, SCHEMA)

        assert "guidance" in exc_info.value.details["keys"]

    def test_invalid_url(self):
        with pytest.raises(ProviderConfigInvalidError):
            parse_settings({"api_key": "sk-1", "base_url": "not a url"}, SCHEMA)

    def test_unknown_keys_ignored(self):
        parsed = parse_settings({"api_key": "sk-1", "color": "blue"}, SCHEMA)

        assert not hasattr(parsed, "color")

    def test_required_with_default_uses_default(self):
        schema = [SettingsItem(key="builtin", type=SettingType.BOOLEAN, required=True, default_value=True)]

        assert parse_settings({}, schema).builtin is True


class TestChooseAbility:
    """Test cases for choose_ability."""

    def _request(self, images=None):
        return GenerateRequest(provider_id="fake", model_id="m", prompt="a cat", images=images)

    def test_i2i_model_with_images(self):
        assert choose_ability(self._request(["data:image/png;base64,AA=="]), Ability.I2I) == Ability.I2I

    def test_i2i_model_without_images(self):
        assert choose_ability(self._request(), Ability.I2I) == Ability.T2I

    def test_i2i_model_with_empty_images(self):
        assert choose_ability(self._request([]), Ability.I2I) == Ability.T2I

    def test_t2i_model_ignores_images(self):
        assert choose_ability(self._request(["data:image/png;base64,AA=="]), Ability.T2I) == Ability.T2I


class TestGenerateModels:
    """Test cases for request/result models."""

    def test_request_defaults(self):
        request = GenerateRequest(provider_id="fake", model_id="m", prompt="a cat")

        assert request.n == 1
        assert request.images is None

    def test_request_rejects_zero_images_count(self):
        with pytest.raises(ValueError):
            GenerateRequest(provider_id="fake", model_id="m", prompt="a cat", n=0)

    def test_config_error_result(self):
        result = GenerateResult.config_error()

        assert result.images == []
        assert result.error_reason == ErrorReason.CONFIG_ERROR


class TestAiProvider:
    """Test cases for the AiProvider base class."""

    def test_find_model(self):
        provider = FakeProvider()

        assert provider.find_model("fake-multi").max_input_images == 3

    def test_find_model_unknown(self):
        with pytest.raises(ModelNotFoundError):
            FakeProvider().find_model("nope")

    def test_descriptor(self):
        descriptor = FakeProvider().descriptor()

        assert descriptor.id == "fake"
        assert [item.key for item in descriptor.settings] == ["api_key", "style"]
        assert [model.id for model in descriptor.models] == ["fake-t2i", "fake-i2i", "fake-multi"]

    def test_parse_settings_uses_own_schema(self):
        parsed = FakeProvider().parse_settings({"api_key": "sk"})

        assert parsed.style == "photo"
