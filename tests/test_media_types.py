"""Signature sniffing."""

import pytest

from sv_app.core.media_types import GIF, HEIC, JPEG, MP4, PNG, is_json_content_type, is_zip, sniff


class TestSniff:
    @pytest.mark.parametrize(
        "head,expected",
        [
            (b"\xff\xd8\xff\xe0rest", JPEG),
            (b"\x89PNG\r\n\x1a\n", PNG),
            (b"GIF89a....", GIF),
            (b"\x00\x00\x00\x18ftypheic\x00\x00", HEIC),
            (b"\x00\x00\x00\x18ftypmif1\x00\x00", HEIC),
            (b"\x00\x00\x00\x18ftypisom\x00\x00", MP4),
            (b"\x00\x00\x00\x18ftypqt  \x00\x00", MP4),
        ],
    )
    def test_known(self, head, expected):
        assert sniff(head) == expected

    def test_unknown(self):
        assert sniff(b"hello world!") is None
        assert sniff(b"") is None


class TestContainers:
    def test_zip(self):
        assert is_zip(b"PK\x03\x04...")
        assert not is_zip(b"PK\x05\x06")
        assert not is_zip(b"PK")

    def test_json_content_type(self):
        assert is_json_content_type("application/json; charset=utf-8")
        assert not is_json_content_type("image/jpeg")
        assert not is_json_content_type(None)
