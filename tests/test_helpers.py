import pytest

from snip.helpers import (
    DEFAULT_LENGTH,
    URL_SAFE_CHARS,
    cache_key,
    generate_code,
    is_valid_custom_code,
    is_valid_url,
    sanitize_url,
)


# Tests generate_code
def test_generate_code_properties():
    code = generate_code()
    assert len(code) == DEFAULT_LENGTH
    assert all(char in URL_SAFE_CHARS for char in code)


@pytest.mark.parametrize("length", [1, 4, 7, 12])
def test_generate_code_length(length):
    assert len(generate_code(length)) == length


def test_generate_code_is_random():
    codes = {generate_code() for _ in range(200)}
    assert len(codes) == 200


def test_generate_code_uses_whole_alphabet():
    seen = set("".join(generate_code(50) for _ in range(100)))
    assert seen == set(URL_SAFE_CHARS)


def test_alphabet_has_62_symbols():
    assert len(set(URL_SAFE_CHARS)) == 62


# Tests is_valid_url
@pytest.mark.parametrize(
    "url",
    [
        "https://example.com",
        "http://example.com/path?param=value&other=1",
        "https://sub.example.org:8443/a/b#frag",
        "http://localhost:3000/",
        "https://example.com/search?q=" + "a" * 2100,
    ],
)
def test_is_valid_url_accepts(url):
    assert is_valid_url(url)


@pytest.mark.parametrize(
    "url",
    [
        "",
        None,
        "not-a-url",
        "example.com",
        "ftp://example.com/file",
        "javascript:alert(1)",
        "mailto:someone@example.com",
        "/relative/path",
        "https://",
    ],
)
def test_is_valid_url_rejects(url):
    assert not is_valid_url(url)


# Tests is_valid_custom_code
@pytest.mark.parametrize("code", ["abc", "mycode", "my-code_1", "A" * 20])
def test_is_valid_custom_code_accepts(code):
    assert is_valid_custom_code(code)


@pytest.mark.parametrize("code", ["", None, "ab", "a" * 21, "my code", "my/code", "c0de!"])
def test_is_valid_custom_code_rejects(code):
    assert not is_valid_custom_code(code)


def test_cache_key():
    assert cache_key("abc1234") == "url:abc1234"


def test_sanitize_url():
    assert sanitize_url("  https://example.com \n") == "https://example.com"
