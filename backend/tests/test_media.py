"""
Tests for media helpers, placeholder avatars and settings.
"""
import re

import pytest

from imagerelay.config import Settings
from imagerelay.utils.avatars import name_color, placeholder_avatar_url
from imagerelay.utils.media import (
    InvalidDataURL,
    build_data_url,
    extension_for_mime,
    generate_random_filename,
    mime_type_of,
    parse_data_url,
    safe_filename,
)

RANDOM_NAME = re.compile(r"^image_\d{13}_\d{1,4}\.jpg$")


class TestMimeTypeOf:
    """Tests for extension-based MIME detection."""

    @pytest.mark.parametrize("path,expected", [
        ("photo.jpg", "image/jpeg"),
        ("photo.JPEG", "image/jpeg"),
        ("/data/user/0/cache/shot.png", "image/png"),
        ("file:///storage/emulated/0/DCIM/anim.gif", "image/gif"),
        ("sticker.webp", "image/webp"),
        ("scan.bmp", "image/bmp"),
        ("IMG_0001.HEIC", "image/heic"),
        ("IMG_0002.heif", "image/heif"),
    ])
    def test_known_extensions(self, path, expected):
        assert mime_type_of(path) == expected

    @pytest.mark.parametrize("path", ["", "noextension", "archive.tar.zst", "/dir.with.dots/file"])
    def test_unknown_falls_back_to_jpeg(self, path):
        assert mime_type_of(path) == "image/jpeg"

    def test_query_string_ignored(self):
        assert mime_type_of("https://cdn.example.com/a/b.png?token=abc.jpg") == "image/png"


class TestFilenames:
    """Tests for safe_filename and generate_random_filename."""

    def test_random_filename_pattern(self):
        assert RANDOM_NAME.match(generate_random_filename())

    def test_random_filename_custom_prefix(self):
        assert re.match(r"^avatar_\d{13}_\d{1,4}\.png$", generate_random_filename("avatar", "png"))

    def test_trailing_segment_kept(self):
        assert safe_filename("file:///cache/ImagePicker/3F2A.jpeg") == "3F2A.jpeg"

    def test_plain_name_kept(self):
        assert safe_filename("photo.png") == "photo.png"

    @pytest.mark.parametrize("path", ["", "/cache/dir/", "content://media/external/images/42"])
    def test_generated_when_no_usable_name(self, path):
        assert RANDOM_NAME.match(safe_filename(path))


class TestDataURL:
    """Tests for data URL building and parsing."""

    def test_parse(self):
        mime_type, content = parse_data_url("data:image/png;base64,aGVsbG8=")

        assert mime_type == "image/png"
        assert content == b"hello"

    def test_build_then_parse(self):
        assert parse_data_url(build_data_url("image/webp", "AAEC")) == ("image/webp", b"\x00\x01\x02")

    @pytest.mark.parametrize("value", [
        "",
        "aGVsbG8=",
        "data:image/png,aGVsbG8=",
        "data:image/png;base64,",
        "data:image/png;base64,abc",
    ])
    def test_invalid(self, value):
        with pytest.raises(InvalidDataURL):
            parse_data_url(value)

    def test_extension_for_mime(self):
        assert extension_for_mime("image/png") == "png"
        assert extension_for_mime("image/svg+xml") == "svg+xml"


class TestPlaceholderAvatar:
    """Tests for generated avatar URLs."""

    def test_color_from_code_sum(self):
        # ord("A") + ord("B") = 131 = 0x83
        assert name_color("AB") == "830000"

    def test_color_truncated_to_six(self):
        assert len(name_color("x" * 200000)) == 6

    def test_url_format(self):
        url = placeholder_avatar_url("Magnus Carlsen")

        assert url == (
            "https://ui-avatars.com/api/?name=Magnus%20Carlsen"
            f"&background={name_color('Magnus Carlsen')}&color=fff&size=256"
        )

    def test_deterministic(self):
        assert placeholder_avatar_url("Judit") == placeholder_avatar_url("Judit")
        assert placeholder_avatar_url("Judit") != placeholder_avatar_url("Hikaru")


class TestSettings:
    """Tests for settings derived values."""

    def test_explicit_host(self):
        assert Settings(host="https://images.example.com/").public_host == "https://images.example.com"

    def test_detected_host(self, monkeypatch):
        monkeypatch.setattr("imagerelay.config.local_ip_address", lambda: "192.168.1.20")

        assert Settings(host=None, port=4000).public_host == "http://192.168.1.20:4000"

    def test_legacy_buckets_from_env(self, monkeypatch):
        monkeypatch.setenv("OBJECT_STORE_LEGACY_BUCKET_IDS", '["old", "older"]')

        assert Settings().object_store_legacy_bucket_ids == ["old", "older"]
