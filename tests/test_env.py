import pytest

from wsquiz.env import get_bool, get_int, get_string

KEY = "WSQUIZ_TEST_VARIABLE"


def test_get_string_fallback(monkeypatch):
    monkeypatch.delenv(KEY, raising=False)
    assert get_string(KEY, ":8080") == ":8080"


def test_get_string_value(monkeypatch):
    monkeypatch.setenv(KEY, "localhost:6379")
    assert get_string(KEY, ":8080") == "localhost:6379"


def test_get_string_empty_value_is_kept(monkeypatch):
    monkeypatch.setenv(KEY, "")
    assert get_string(KEY, "fallback") == ""


@pytest.mark.parametrize("raw, expected", [("42", 42), ("-7", -7), ("+3", 3)])
def test_get_int_parses(monkeypatch, raw, expected):
    monkeypatch.setenv(KEY, raw)
    assert get_int(KEY, 0) == expected


@pytest.mark.parametrize("raw", ["4_2", " 42", "4.2", "abc", "", "99999999999999999999"])
def test_get_int_invalid_uses_fallback(monkeypatch, raw):
    monkeypatch.setenv(KEY, raw)
    assert get_int(KEY, 11) == 11


def test_get_int_unset(monkeypatch):
    monkeypatch.delenv(KEY, raising=False)
    assert get_int(KEY, 5) == 5


@pytest.mark.parametrize("raw", ["1", "t", "T", "TRUE", "true", "True"])
def test_get_bool_true(monkeypatch, raw):
    monkeypatch.setenv(KEY, raw)
    assert get_bool(KEY, False) is True


@pytest.mark.parametrize("raw", ["0", "f", "F", "FALSE", "false", "False"])
def test_get_bool_false(monkeypatch, raw):
    monkeypatch.setenv(KEY, raw)
    assert get_bool(KEY, True) is False


@pytest.mark.parametrize("raw", ["yes", "tRUE", ""])
def test_get_bool_invalid_uses_fallback(monkeypatch, raw):
    monkeypatch.setenv(KEY, raw)
    assert get_bool(KEY, True) is True


def test_get_bool_unset(monkeypatch):
    monkeypatch.delenv(KEY, raising=False)
    assert get_bool(KEY, False) is False