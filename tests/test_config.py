import pytest

from contractguard.adapters import FlaskAdapter, adapter_registry
from contractguard.config import PRESETS, configure, get_config, reset_config
from contractguard.contracts.context import get_session_provider, set_session_provider
from contractguard.contracts.errors import ContractConfigurationError
from contractguard.contracts.registry import PipelineSpec


def test_defaults():
    config = get_config()
    assert config.default_layer == "unknown"
    assert config.default_rate_limit_window_ms == 60000
    assert "password" in config.sensitive_fields
    assert config is get_config()


def test_testing_preset():
    config = configure(preset="testing")
    assert config.audit_enabled is False
    assert config.rate_limit_storage_uri == "memory://"
    assert config.default_rate_limit_window_ms == 1000


def test_options_override_preset():
    config = configure(preset="testing", audit_enabled=True)
    assert config.audit_enabled is True


def test_presets_are_known():
    assert set(PRESETS) == {"development", "production", "testing"}


def test_unknown_preset():
    with pytest.raises(ContractConfigurationError) as exc_info:
        configure(preset="staging")
    assert "Unknown preset 'staging'" in str(exc_info.value)


def test_unknown_option():
    with pytest.raises(ContractConfigurationError):
        configure(retries=3)


@pytest.mark.parametrize("options", [
    {"default_layer": ""},
    {"default_rate_limit_window_ms": 0},
    {"default_rate_limit_window_ms": -5},
    {"resource_lookup": "not callable"},
    {"audit_sink": object()},
    {"sensitive_fields": "password"},
    {"validation_error_types": [ValueError]},
    {"validation_error_types": (ValueError, "KeyError")},
])
def test_invalid_values_keep_previous_config(options):
    configure(default_layer="business")

    with pytest.raises(ContractConfigurationError):
        configure(**options)

    assert get_config().default_layer == "business"


def test_default_layer_flows_into_specs():
    configure(default_layer="service")
    assert PipelineSpec().layer == "service"
    assert PipelineSpec(layer="data").layer == "data"


def test_sensitive_fields_are_normalized_to_tuple():
    assert configure(sensitive_fields=["pin"]).sensitive_fields == ("pin",)


def test_reset_clears_provider_and_registry():
    configure(default_layer="business")
    set_session_provider(lambda: None)
    adapter_registry.register(FlaskAdapter())

    reset_config()

    assert get_config().default_layer == "unknown"
    assert get_session_provider() is None
    assert adapter_registry.count() == 0


def test_session_provider_is_a_config_collaborator():
    import asyncio
    from contractguard.contracts.context import resolve_auth_context

    configure(session_provider=lambda: {"user": {"id": "from-config"}})
    assert get_session_provider() is get_config().session_provider
    assert asyncio.run(resolve_auth_context()).user.id == "from-config"

    with pytest.raises(ContractConfigurationError):
        configure(session_provider="nope")
