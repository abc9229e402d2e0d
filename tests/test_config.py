"""Settings validation tests."""

import pytest
from pydantic import ValidationError

from shortlinks.config import Settings
from shortlinks.enums import StoreBackend


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.SHORT_CODE_LENGTH == 6
    assert settings.DEFAULT_VALIDITY_MINUTES == 30
    assert settings.STORE_BACKEND is StoreBackend.SQL


@pytest.mark.parametrize("length", [4, 10])
def test_short_code_length_within_format_bounds(length: int) -> None:
    assert Settings(_env_file=None, SHORT_CODE_LENGTH=length).SHORT_CODE_LENGTH == length


@pytest.mark.parametrize("length", [0, 3, 11, 12])
def test_short_code_length_outside_format_bounds_rejected(length: int) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, SHORT_CODE_LENGTH=length)
