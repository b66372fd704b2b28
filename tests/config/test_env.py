from __future__ import annotations

import pytest

from ghexplorer.config import (
    ConfigurationError,
    MissingConfigurationError,
    env_positive_int,
    optional_env_var,
    require_env_vars,
)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_reports_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_optional_env_var_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  ")
    assert optional_env_var("EXAMPLE_VAR") is None

    monkeypatch.setenv("EXAMPLE_VAR", " padded ")
    assert optional_env_var("EXAMPLE_VAR") == "padded"


def test_env_positive_int(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EXAMPLE_SIZE", raising=False)
    assert env_positive_int("EXAMPLE_SIZE", 7) == 7

    monkeypatch.setenv("EXAMPLE_SIZE", "25")
    assert env_positive_int("EXAMPLE_SIZE", 7) == 25


@pytest.mark.parametrize("raw", ["zero", "0", "-3"])
def test_env_positive_int_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("EXAMPLE_SIZE", raw)

    with pytest.raises(ConfigurationError, match="EXAMPLE_SIZE"):
        env_positive_int("EXAMPLE_SIZE", 7)
