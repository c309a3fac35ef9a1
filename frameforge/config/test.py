"""Tests for configuration management."""

from pathlib import Path

import pytest

from .lib import (
    EngineConfig,
    EnvConfig,
    EnvVar,
    get_engine_config,
    get_environment,
    get_environment_info,
    get_model_cache_dir,
    get_session_storage_dir,
    list_environment_variables,
    validate_engine_config,
)

# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("SUBPROCESS_TIMEOUT_MS", raising=False)
        assert get_environment(EnvVar.SUBPROCESS_TIMEOUT_MS) == 120000

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("DEFAULT_INFERENCE_STEPS", "40")
        assert get_environment(EnvVar.DEFAULT_INFERENCE_STEPS, override=5) == 5

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_INFERENCE_STEPS", "40")
        assert get_environment(EnvVar.DEFAULT_INFERENCE_STEPS) == 40

    @pytest.mark.unit
    def test_float_type_conversion(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_GUIDANCE_SCALE", "9.25")
        result = get_environment(EnvVar.DEFAULT_GUIDANCE_SCALE)
        assert result == 9.25
        assert isinstance(result, float)

    @pytest.mark.unit
    def test_invalid_number_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("MCP_PORT", "not-a-port")
        assert get_environment(EnvVar.MCP_PORT) == 18090

    @pytest.mark.unit
    def test_path_type_expands_user(self, monkeypatch):
        monkeypatch.setenv("SESSION_STORAGE_DIR", "~/sessions")
        result = get_environment(EnvVar.SESSION_STORAGE_DIR)
        assert isinstance(result, Path)
        assert "~" not in str(result)

    @pytest.mark.unit
    def test_empty_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "")
        assert get_environment(EnvVar.LOG_LEVEL) == "info"


class TestIntrospection:
    """Tests for metadata helpers."""

    @pytest.mark.unit
    def test_environment_info(self):
        info = get_environment_info(EnvVar.MODEL_NAME)
        assert isinstance(info, EnvConfig)
        assert info.name == "MODEL_NAME"
        assert info.category == "engine"

    @pytest.mark.unit
    def test_list_by_category(self):
        generation = list_environment_variables("generation")
        assert EnvVar.DEFAULT_IMAGE_WIDTH in generation
        assert EnvVar.MCP_PORT not in generation
        assert len(list_environment_variables()) == len(EnvVar)

    @pytest.mark.unit
    def test_names_match_members(self):
        for var in EnvVar:
            assert var.value.name == var.name


# =============================================================================
# Path helpers
# =============================================================================


class TestPathHelpers:
    @pytest.mark.unit
    def test_session_storage_default(self, monkeypatch):
        monkeypatch.delenv("SESSION_STORAGE_DIR", raising=False)
        assert get_session_storage_dir() == Path.home() / ".frameforge" / "sessions"

    @pytest.mark.unit
    def test_session_storage_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SESSION_STORAGE_DIR", str(tmp_path))
        assert get_session_storage_dir() == tmp_path

    @pytest.mark.unit
    def test_session_storage_override(self, tmp_path):
        assert get_session_storage_dir(tmp_path / "x") == tmp_path / "x"

    @pytest.mark.unit
    def test_model_cache_default(self, monkeypatch):
        monkeypatch.delenv("MODEL_CACHE_DIR", raising=False)
        expected = Path.home() / ".cache" / "huggingface" / "hub"
        assert get_model_cache_dir() == expected


# =============================================================================
# Engine configuration
# =============================================================================


class TestEngineConfig:
    @pytest.mark.unit
    def test_defaults_are_valid(self):
        validate_engine_config(EngineConfig())

    @pytest.mark.unit
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_IMAGE_WIDTH", "768")
        monkeypatch.setenv("PYTHON_PATH", "/opt/py/bin/python")
        config = get_engine_config()
        assert config.width == 768
        assert config.python_path == "/opt/py/bin/python"
        assert config.steps == 20
        assert config.guidance_scale == 7.5

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "field, value, message",
        [
            ("width", 0, "width must be"),
            ("height", 4096, "height must be"),
            ("steps", 101, "steps must be"),
            ("timeout_ms", 0, "timeout_ms must be"),
            ("guidance_scale", 0.0, "guidance_scale must be"),
        ],
    )
    def test_rejects_out_of_range(self, field, value, message):
        config = EngineConfig(**{field: value})
        with pytest.raises(ValueError, match=message):
            validate_engine_config(config)

    @pytest.mark.unit
    def test_get_engine_config_validates(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_INFERENCE_STEPS", "500")
        with pytest.raises(ValueError, match="Invalid engine configuration"):
            get_engine_config()
