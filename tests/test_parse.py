"""Export parsing: input files, row filtering, filenames and link expiry."""

import zipfile
from datetime import datetime, timedelta, timezone

import pytest

from sv_app.core.errors import ParseError
from sv_app.modules.export.schemas import MediaKind
from sv_app.modules.geocode.schemas import PENDING_GEOCODING
from sv_app.modules.parse.service import (
    ExpiryStatus,
    build_filename,
    expiry_status,
    parse_export,
    parse_html,
    read_export,
)

TS = 1714564800000  # 2024-05-01 12:00:00 UTC in epoch ms


def _row(date, kind, location, url, is_get="true"):
    return (
        "<tr>"
        f"<td>{date}</td><td>{kind}</td><td>{location}</td>"
        f"<td><a href=\"#\" onclick=\"downloadMemories('{url}', this, {is_get});\">Download</a></td>"
        "</tr>"
    )


def _page(*rows):
    return (
        "<html><body><table><thead><tr><th>Date</th></tr></thead><tbody>"
        + "".join(rows)
        + "</tbody></table></body></html>"
    )


GET_URL = f"https://cdn.example.com/m/1?ts={TS}"
POST_URL = "https://app.example.com/dmd/memories?uid=1"

PAGE = _page(
    _row("2024-05-01 12:00:00 UTC", "Image", "Latitude, Longitude: 48.8566, 2.3522", GET_URL),
    _row("2023-12-31 23:59:59 UTC", "Video", "", POST_URL, is_get="false"),
    _row("2022-01-01 00:00:00 UTC", "Story", "", "https://cdn.example.com/x"),
    _row("not a date", "Image", "", "https://cdn.example.com/y"),
    "<tr><td>too</td><td>short</td></tr>",
)


class TestParseHtml:
    def test_valid_rows_only(self):
        result = parse_html(PAGE)
        assert len(result.assets) == 2

        image, video = result.assets
        assert image.kind == MediaKind.image
        assert image.captured_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert (image.latitude, image.longitude) == (48.8566, 2.3522)
        assert image.is_get and image.url == GET_URL
        assert image.country == PENDING_GEOCODING

        assert video.kind == MediaKind.video
        assert not video.is_get
        assert (video.latitude, video.longitude) == (0.0, 0.0)

    def test_ids_are_stable_and_distinct(self):
        a = parse_html(PAGE).assets
        b = parse_html(PAGE).assets
        assert [x.id for x in a] == [x.id for x in b]
        assert len({x.id for x in a}) == len(a)
        assert all(len(x.id) == 40 for x in a)

    def test_out_of_range_coordinates_become_zero(self):
        page = _page(_row("2024-05-01 12:00:00 UTC", "Image", "Latitude, Longitude: 95.0, 200.0", GET_URL))
        asset = parse_html(page).assets[0]
        assert (asset.latitude, asset.longitude) == (0.0, 0.0)

    def test_expiry_from_latest_get_link(self):
        result = parse_html(PAGE)
        assert result.expires_at == datetime(2024, 5, 8, 12, 0, tzinfo=timezone.utc)

    def test_no_get_links_means_unknown_expiry(self):
        page = _page(_row("2024-05-01 12:00:00 UTC", "Image", "", POST_URL, is_get="false"))
        assert parse_html(page).expires_at is None


class TestFilename:
    def test_format(self):
        ts = datetime(2021, 7, 4, 9, 5, 3, tzinfo=timezone.utc)
        name = build_filename(ts, MediaKind.video, "deadbeefcafe" + "0" * 28)
        assert name == "2021-07-04_09-05-03_Video_deadbeef.mp4"


class TestInputFiles:
    def test_html_file(self, tmp_path):
        p = tmp_path / "memories_history.html"
        p.write_text(PAGE, encoding="utf-8")
        assert len(parse_export(p).assets) == 2

    def test_zip_file(self, tmp_path):
        p = tmp_path / "export.zip"
        with zipfile.ZipFile(p, "w") as zf:
            zf.writestr("html/memories_history.html", PAGE)
        assert "downloadMemories" in read_export(p)

    def test_zip_without_history(self, tmp_path):
        p = tmp_path / "export.zip"
        with zipfile.ZipFile(p, "w") as zf:
            zf.writestr("json/other.json", "{}")
        with pytest.raises(ParseError) as exc:
            read_export(p)
        assert exc.value.message_key == "ERROR_NO_HTML_IN_ZIP"

    def test_corrupt_zip(self, tmp_path):
        p = tmp_path / "export.zip"
        p.write_bytes(b"not a zip at all")
        with pytest.raises(ParseError) as exc:
            read_export(p)
        assert exc.value.message_key == "ERROR_INVALID_FILE"

    def test_wrong_type(self, tmp_path):
        p = tmp_path / "export.pdf"
        p.write_bytes(b"%PDF")
        with pytest.raises(ParseError) as exc:
            read_export(p)
        assert exc.value.message_key == "ERROR_INVALID_FILE_TYPE"

    def test_no_memories(self, tmp_path):
        p = tmp_path / "empty.html"
        p.write_text(_page(), encoding="utf-8")
        with pytest.raises(ParseError) as exc:
            parse_export(p)
        assert exc.value.message_key == "ERROR_NO_MEMORIES_FOUND"


class TestExpiryStatus:
    NOW = datetime(2024, 5, 5, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(hours=-1), ExpiryStatus.expired),
            (timedelta(hours=3), ExpiryStatus.soon),
            (timedelta(days=3), ExpiryStatus.valid),
        ],
    )
    def test_windows(self, delta, expected):
        assert expiry_status(self.NOW + delta, now=self.NOW) == expected

    def test_unknown(self):
        assert expiry_status(None) == ExpiryStatus.unknown
