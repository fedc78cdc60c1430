import os
from unittest.mock import patch

import pytest

from common.config.env import get_env_int, get_env_str


def test_get_env_str():
    """Test getting string environment variables."""
    with patch.dict(os.environ, {"TEST_STR": "hello"}):
        assert get_env_str("TEST_STR") == "hello"
        assert get_env_str("NONEXISTENT", "default") == "default"
        assert get_env_str("NONEXISTENT") is None


def test_get_env_str_required():
    """Required variables raise KeyError when missing."""
    with patch.dict(os.environ, {}, clear=True):
        with pytest.raises(KeyError, match="MISSING_VAR"):
            get_env_str("MISSING_VAR", required=True)


def test_get_env_int():
    """Test getting integer environment variables."""
    with patch.dict(os.environ, {"TEST_INT": "123", "TEST_BAD_INT": "abc"}):
        assert get_env_int("TEST_INT") == 123
        assert get_env_int("NONEXISTENT", 456) == 456

        with pytest.raises(ValueError, match="must be an integer"):
            get_env_int("TEST_BAD_INT")
