import pytest

from trace_normalizer.config import load_settings, parse_delta
from trace_normalizer.models import WriteMode


def test_defaults():
    settings = load_settings({})
    assert settings.columns == 0
    assert settings.delta == []
    assert settings.write_mode is WriteMode.IN_PLACE
    assert settings.atomic is False
    assert settings.port == 8001


def test_load_from_env():
    settings = load_settings({
        "TRACE_NORMALIZER_COLUMNS": "2",
        "TRACE_NORMALIZER_DELTA": "2.0, 0.5",
        "TRACE_NORMALIZER_WRITE_MODE": "output_folder",
        "TRACE_NORMALIZER_ATOMIC": "yes",
        "TRACE_NORMALIZER_LOG_LEVEL": "debug",
    })
    assert settings.columns == 2
    assert settings.delta == [2.0, 0.5]
    assert settings.write_mode is WriteMode.OUTPUT_FOLDER
    assert settings.atomic is True
    assert settings.log_level == "DEBUG"

    config = settings.trace_config()
    assert config.num_columns == 2
    assert config.delta == (2.0, 0.5)
    assert config.is_consistent


def test_request_values_override_settings():
    settings = load_settings({"TRACE_NORMALIZER_COLUMNS": "3"})
    config = settings.trace_config(columns=1, delta=[4.0])
    assert config.num_columns == 1
    assert config.delta == (4.0,)
    assert settings.write_policy(atomic=True).atomic is True


def test_parse_delta():
    assert parse_delta("") == []
    assert parse_delta(None) == []
    assert parse_delta("1,-2.5") == [1.0, -2.5]
    with pytest.raises(ValueError):
        parse_delta("1,x")


@pytest.mark.parametrize(
    "env",
    [
        {"TRACE_NORMALIZER_COLUMNS": "-1"},
        {"TRACE_NORMALIZER_ATOMIC": "maybe"},
        {"TRACE_NORMALIZER_WRITE_MODE": "elsewhere"},
    ],
)
def test_bad_values_raise(env):
    with pytest.raises(ValueError):
        load_settings(env)
