import io
from datetime import datetime, timezone

import pytest

from mediarepo import util


def test_array_contains():
    assert util.array_contains(["image/png", "image/gif"], "image/gif") is True
    assert util.array_contains(["image/png"], "image/jpeg") is False
    assert util.array_contains([], "x") is False


def test_to_utf8_valid_bytes_and_str():
    assert util.to_utf8("héllo".encode("utf-8"), "") == "héllo"
    assert util.to_utf8("already text", "text/plain") == "already text"


def test_to_utf8_uses_content_type_charset():
    raw = "café crème".encode("iso-8859-1")
    assert util.to_utf8(raw, "text/html; charset=iso-8859-1") == "café crème"


def test_to_utf8_detection_returns_text():
    raw = ("Une phrase française assez longue pour la détection, très bien. " * 4).encode("cp1252")
    result = util.to_utf8(raw, "")
    assert "phrase" in result
    assert result.count("Une") == 4


def test_file_exists(tmp_path):
    target = tmp_path / "f.bin"
    assert util.file_exists(target) is False
    target.write_bytes(b"x")
    assert util.file_exists(target) is True


@pytest.mark.parametrize(
    "path, segments, expected",
    [
        ("a/b/c/d", 2, "c/d"),
        ("/base/ab/cd/rest", 3, "ab/cd/rest"),
        ("a/b", 3, "a/b"),
        ("a/b/c", 1, "c"),
    ],
)
def test_get_last_segments_of_path(path, segments, expected):
    assert util.get_last_segments_of_path(path, segments) == expected


def test_sha256_of_empty_stream_and_file(tmp_path):
    empty_hash = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    assert util.get_sha256_hash_of_stream(io.BytesIO(b"")) == empty_hash
    target = tmp_path / "empty"
    target.write_bytes(b"")
    assert util.get_file_hash(target) == empty_hash


def test_file_hash_matches_stream_hash(tmp_path):
    payload = b"media bytes" * 10000
    target = tmp_path / "m"
    target.write_bytes(payload)
    stream_hash = util.get_sha256_hash_of_stream(io.BytesIO(payload))
    assert util.get_file_hash(target) == stream_hash
    assert len(stream_hash) == 64


def test_sha256_stream_is_closed():
    stream = io.BytesIO(b"abc")
    util.get_sha256_hash_of_stream(stream)
    assert stream.closed


def test_access_token_from_bearer_header():
    assert util.get_access_token_from_request({"Authorization": "Bearer token"}, {}) == "token"
    assert util.get_access_token_from_request({"authorization": "Bearer token"}, None) == "token"


def test_access_token_rejects_non_bearer():
    headers = {"Authorization": "Basic token"}
    assert util.get_access_token_from_request(headers, {"access_token": ["token"]}) == ""


def test_access_token_falls_back_to_query():
    assert util.get_access_token_from_request({}, {"access_token": ["token"]}) == "token"
    assert util.get_access_token_from_request({"Authorization": "Bearer"}, "access_token=token") == "token"
    assert util.get_access_token_from_request({}, {}) == ""


def test_appservice_user_id():
    assert util.get_appservice_user_id_from_request({"user_id": "@bot:example.org"}) == "@bot:example.org"
    assert util.get_appservice_user_id_from_request({}) == ""


def test_log_safe_query_string_redacts():
    result = util.get_log_safe_query_string({"access_token": ["token"], "a": ["1 2"]})
    assert result == "a=1+2&access_token=redacted"
    assert "token" not in result.replace("access_token", "")


def test_log_safe_query_string_without_token():
    assert util.get_log_safe_query_string("b=2&a=1") == "a=1&b=2"


def test_split_mxc():
    assert util.split_mxc("mxc://example.org/abc123") == ("example.org", "abc123")
    assert util.split_mxc("mxc://example.org/abc123?x=1") == ("example.org", "abc123")


@pytest.mark.parametrize("bad", ["https://example.org/abc", "mxc://example.org", "mxc://a/b/c"])
def test_split_mxc_invalid(bad):
    with pytest.raises(ValueError):
        util.split_mxc(bad)


def test_split_user_id():
    assert util.split_user_id("@alice:example.org") == ("alice", "example.org")
    assert util.split_user_id("@alice:example.org:8448") == ("alice", "example.org:8448")


@pytest.mark.parametrize("bad", ["alice:example.org", "@alice"])
def test_split_user_id_invalid(bad):
    with pytest.raises(ValueError):
        util.split_user_id(bad)


def test_is_animated_png():
    assert util.is_animated_png(b"\x89PNG....acTL....IDAT....") is True
    assert util.is_animated_png(b"\x89PNG....IDAT....acTL....") is False
    assert util.is_animated_png(b"\x89PNG nothing here") is False


def test_fix_content_type():
    assert util.fix_content_type("text/html; charset=utf-8") == "text/html"
    assert util.fix_content_type("image/png") == "image/png"


def test_random_bytes_and_string():
    assert len(util.generate_random_bytes(32)) == 32
    first = util.generate_random_string(32)
    second = util.generate_random_string(32)
    assert len(first) == 40
    assert all(c in "0123456789abcdef" for c in first)
    assert first != second


def test_sha1_of_string():
    assert util.get_sha1_of_string("") == "da39a3ee5e6b4b0d3255bfef95601890afd80709"
    assert util.get_sha1_of_string("a") == util.get_sha1_of_string("a")
    assert util.get_sha1_of_string("a") != util.get_sha1_of_string("b")


def test_clone_reader_gives_full_copies():
    payload = bytes(range(256)) * 1000
    readers = util.clone_reader(io.BytesIO(payload), 3)
    assert len(readers) == 3
    assert [reader.read() for reader in readers] == [payload] * 3


def test_has_any_prefix():
    assert util.has_any_prefix("image/png", ["video/", "image/"]) is True
    assert util.has_any_prefix("audio/ogg", ["video/", "image/"]) is False
    assert util.has_any_prefix("x", []) is False


def test_time_round_trip():
    ms = util.now_millis()
    assert abs(util.from_millis(ms).timestamp() * 1000 - ms) < 1
    assert util.from_millis(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_make_url():
    assert util.make_url("https://example.org/", "_matrix", "/media") == "https://example.org/_matrix/media"
    assert util.make_url("https://example.org", "v1/") == "https://example.org/v1"


def test_make_url_empty_part():
    with pytest.raises(ValueError):
        util.make_url("https://example.org", "")


def test_dump_and_close_stream():
    stream = io.BytesIO(b"leftover data")
    util.dump_and_close_stream(stream)
    assert stream.closed