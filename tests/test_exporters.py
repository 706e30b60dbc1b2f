"""
Unit tests for the exporters, the platform API client and the photo cache.

HTTP is replaced by MagicMock sessions; nothing leaves the process.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from artimport.api_client import ArtworkApiClient, parse_existing_artwork
from artimport.config.settings import ConfigurationError
from artimport.domain.errors import DuplicateCheckError, ExportError, PhotoDownloadError
from artimport.domain.models import UnifiedImportRecord
from artimport.exporters import ApiExporter, ConsoleExporter, JsonFileExporter
from artimport.photo_cache import PhotoCache


def make_record(**overrides) -> UnifiedImportRecord:
    values = {
        "source_id": "vancouver-public-art:82",
        "title": "Digital Orca",
        "description": "**Description**: Aluminium.",
        "lat": 49.289256,
        "lon": -123.117103,
        "tags": {"type": "Sculpture"},
        "artists": ("Douglas Coupland",),
        "photo_urls": ("https://example.org/orca.jpg",),
        "raw": {"registryid": 82},
    }
    values.update(overrides)
    return UnifiedImportRecord(**values)


def make_response(status_code=200, body=None, text="", headers=None, chunks=()):
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.text = text
    response.headers = headers or {}
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    response.iter_content.return_value = list(chunks)
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def client(session):
    return ArtworkApiClient("https://art.example.org/", token="secret", session=session)


# ===================
# API CLIENT
# ===================

class TestApiClient:

    def test_headers(self, client, session):
        """Bearer token and user agent are set on the session."""
        assert session.headers["Authorization"] == "Bearer secret"
        assert session.headers["User-Agent"].startswith("artimport/")
        assert client.base_url == "https://art.example.org"

    def test_find_nearby(self, client, session):
        """Nearby artworks are parsed from the data envelope."""
        session.get.return_value = make_response(body={
            "success": True,
            "data": {"artworks": [
                {"id": "a1", "title": "Solo", "lat": 49.29, "lon": -123.13,
                 "artist_name": None, "tags": '{"type": "Sculpture"}', "artists": [{"name": "Jane"}]},
                {"id": "broken"},
            ]},
        })

        nearby = client.find_nearby(49.29, -123.13, 100)

        assert [a.id for a in nearby] == ["a1"]
        assert nearby[0].artists == ["Jane"]
        assert nearby[0].tags == {"type": "Sculpture"}
        _, kwargs = session.get.call_args
        assert kwargs["params"]["radius"] == 100

    def test_find_nearby_http_error(self, client, session):
        """A non-2xx lookup raises DuplicateCheckError."""
        session.get.return_value = make_response(503, body={"error": "maintenance"})
        with pytest.raises(DuplicateCheckError, match="maintenance"):
            client.find_nearby(49.29, -123.13, 100)

    def test_find_nearby_network_error(self, client, session):
        """Connection failures raise DuplicateCheckError."""
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(DuplicateCheckError):
            client.find_nearby(49.29, -123.13, 100)

    def test_create_artwork(self, client, session):
        """The data object of a successful response is returned."""
        session.post.return_value = make_response(
            201, body={"success": True, "data": {"artwork_id": "art-9"}}
        )
        assert client.create_artwork({"title": "x"}) == {"artwork_id": "art-9"}

    def test_create_artwork_rejected(self, client, session):
        """A 4xx response raises ExportError with its status code."""
        session.post.return_value = make_response(422, body={"message": "Invalid tags"})
        with pytest.raises(ExportError) as exc_info:
            client.create_artwork({"title": "x"})
        assert exc_info.value.status_code == 422
        assert "Invalid tags" in str(exc_info.value)

    def test_create_artwork_unsuccessful_body(self, client, session):
        """success: false is a failure even with status 200."""
        session.post.return_value = make_response(200, body={"success": False, "error": "Duplicate"})
        with pytest.raises(ExportError, match="Duplicate"):
            client.create_artwork({"title": "x"})

    def test_parse_existing_artwork_aliases(self):
        """latitude/longitude and created_by are understood."""
        artwork = parse_existing_artwork({
            "id": 7, "latitude": "49.1", "longitude": "-123.2", "created_by": "A, B",
        })
        assert artwork.id == "7"
        assert (artwork.lat, artwork.lon) == (49.1, -123.2)
        assert artwork.artists == ["A", "B"]


# ===================
# API EXPORTER
# ===================

class TestApiExporter:

    @pytest.fixture
    def exporter(self, client):
        exporter = ApiExporter()
        exporter.configure({"base_url": "https://art.example.org", "token": "secret"})
        exporter.client = client
        return exporter

    def test_requires_base_url(self):
        """Missing or protocol-less URLs are configuration errors."""
        with pytest.raises(ConfigurationError):
            ApiExporter().configure({})
        with pytest.raises(ConfigurationError):
            ApiExporter().configure({"base_url": "art.example.org"})

    def test_unknown_option(self):
        """Unknown option names are rejected."""
        result = ApiExporter().validate({"base_url": "https://x", "colour": "red"})
        assert not result.valid
        assert "colour" in result.errors[0]

    def test_missing_token_is_warning(self):
        """A missing token does not block the run."""
        result = ApiExporter().validate({"base_url": "https://x"})
        assert result.valid
        assert result.warnings

    @pytest.mark.parametrize("options", [
        {"timeout": "fast"},
        {"timeout": 0},
        {"request_delay": -1},
        {"request_delay": "slow"},
        {"auto_approve": "yes"},
    ])
    def test_bad_option_values(self, options):
        """Wrongly typed or out-of-range options fail validation before any request."""
        result = ApiExporter().validate({"base_url": "https://x", **options})
        assert not result.valid
        with pytest.raises(ConfigurationError):
            ApiExporter().configure({"base_url": "https://x", **options})

    def test_numeric_options_accepted(self):
        """Integer timeouts and a zero delay are valid."""
        result = ApiExporter().validate({"base_url": "https://x", "timeout": 10, "request_delay": 0})
        assert result.valid

    def test_payload(self, exporter):
        """The payload carries the record fields and the approval flag."""
        payload = exporter.build_payload(make_record(title=None), ["https://example.org/orca.jpg"])
        assert payload["external_id"] == "vancouver-public-art:82"
        assert payload["title"] == "Untitled Artwork"
        assert payload["artists"] == ["Douglas Coupland"]
        assert payload["auto_approve"] is False
        assert "raw" not in payload

    def test_export_success(self, exporter, session):
        """A created artwork id is reported."""
        session.post.return_value = make_response(
            201, body={"success": True, "data": {"artwork_id": "art-9"}}
        )
        result = exporter.export(make_record())
        assert result.success
        assert result.created_id == "art-9"

    def test_export_failure(self, exporter, session):
        """HTTP failures come back as an unsuccessful result."""
        session.post.return_value = make_response(500, text="Internal Server Error")
        result = exporter.export(make_record())
        assert not result.success
        assert result.status_code == 500
        assert result.error == "Internal Server Error"

    def test_nearby_lookup_is_client(self, exporter, client):
        """The client answers duplicate checks for this exporter."""
        assert exporter.nearby_lookup() is client

    def test_failed_photo_becomes_warning(self, exporter, session):
        """A photo that cannot be fetched is dropped with a warning."""
        cache = MagicMock()
        cache.fetch.side_effect = PhotoDownloadError("https://example.org/orca.jpg is not an image")
        exporter.photo_cache = cache
        session.post.return_value = make_response(201, body={"success": True, "data": {"artwork_id": "a"}})

        result = exporter.export(make_record())

        assert result.success
        assert result.photo_warnings == ["https://example.org/orca.jpg is not an image"]
        _, kwargs = session.post.call_args
        assert kwargs["json"]["photos"] == []


# ===================
# JSON FILE EXPORTER
# ===================

class TestJsonFileExporter:

    def test_requires_output_path(self):
        """output_path is mandatory."""
        with pytest.raises(ConfigurationError):
            JsonFileExporter().configure({})

    def test_array_output(self, tmp_path):
        """close() writes a JSON array without the raw payload."""
        target = tmp_path / "out" / "artworks.json"
        exporter = JsonFileExporter()
        exporter.configure({"output_path": str(target)})

        result = exporter.export(make_record())
        exporter.close()

        assert result.created_id == "vancouver-public-art:82"
        data = json.loads(target.read_text(encoding="utf-8"))
        assert len(data) == 1
        assert data[0]["title"] == "Digital Orca"
        assert "raw" not in data[0]

    def test_lines_output_with_raw(self, tmp_path):
        """The lines format writes one object per line."""
        target = tmp_path / "artworks.jsonl"
        exporter = JsonFileExporter()
        exporter.configure({"output_path": str(target), "format": "lines", "include_raw": True})

        exporter.export(make_record())
        exporter.export(make_record(source_id="other", lat=48.0))
        exporter.close()

        lines = target.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["raw"] == {"registryid": 82}

    def test_find_nearby_uses_buffer(self, tmp_path):
        """Buffered entries answer nearby lookups."""
        exporter = JsonFileExporter()
        exporter.configure({"output_path": str(tmp_path / "a.json")})
        exporter.export(make_record())

        near = exporter.find_nearby(49.289256, -123.117103, 100)
        far = exporter.find_nearby(48.0, -123.117103, 100)

        assert [a.id for a in near] == ["vancouver-public-art:82"]
        assert near[0].artists == ["Douglas Coupland"]
        assert far == []

    def test_merge_existing(self, tmp_path):
        """Earlier output is kept and used for duplicate checks."""
        target = tmp_path / "a.json"
        first = JsonFileExporter()
        first.configure({"output_path": str(target)})
        first.export(make_record())
        first.close()

        second = JsonFileExporter()
        second.configure({"output_path": str(target), "merge_existing": True})
        assert len(second.find_nearby(49.289256, -123.117103, 10)) == 1
        second.export(make_record(source_id="new", lat=48.0))
        second.close()

        assert len(json.loads(target.read_text(encoding="utf-8"))) == 2

    def test_bad_format(self):
        """Unknown formats are rejected."""
        assert not JsonFileExporter().validate({"output_path": "x", "format": "csv"}).valid

    def test_nothing_exported_leaves_file_untouched(self, tmp_path):
        """close() without any export neither creates nor overwrites the output."""
        missing = tmp_path / "new.json"
        exporter = JsonFileExporter()
        exporter.configure({"output_path": str(missing)})
        exporter.close()
        assert not missing.exists()

        existing = tmp_path / "old.json"
        existing.write_text('[{"id": "keep"}]', encoding="utf-8")
        exporter = JsonFileExporter()
        exporter.configure({"output_path": str(existing)})
        exporter.close()
        assert existing.read_text(encoding="utf-8") == '[{"id": "keep"}]'


# ===================
# CONSOLE EXPORTER
# ===================

class TestConsoleExporter:

    def test_compact(self, capsys):
        """Compact format prints one line per record."""
        exporter = ConsoleExporter()
        exporter.configure({})
        first = exporter.export(make_record())
        second = exporter.export(make_record())

        out = capsys.readouterr().out
        assert "vancouver-public-art:82: Digital Orca by Douglas Coupland @ 49.289256,-123.117103" in out
        assert (first.created_id, second.created_id) == ("console-1", "console-2")

    def test_json_format(self, capsys):
        """The json format prints the record without raw."""
        exporter = ConsoleExporter()
        exporter.configure({"format": "json"})
        exporter.export(make_record())

        printed = json.loads(capsys.readouterr().out)
        assert printed["source_id"] == "vancouver-public-art:82"
        assert "raw" not in printed

    def test_detailed_format(self):
        """Detailed output lists tags and photos."""
        exporter = ConsoleExporter()
        exporter.configure({"format": "detailed"})
        text = exporter.render(make_record())
        assert "  type: Sculpture" in text
        assert "  https://example.org/orca.jpg" in text

    def test_no_lookup(self):
        """The console has no destination to check duplicates against."""
        assert ConsoleExporter().nearby_lookup() is None

    def test_bad_format(self):
        """Unknown formats fail configuration."""
        with pytest.raises(ConfigurationError):
            ConsoleExporter().configure({"format": "xml"})


# ===================
# PHOTO CACHE
# ===================

class TestPhotoCache:

    def test_download_and_reuse(self, tmp_path, session):
        """A photo is downloaded once and then served from disk."""
        session.get.return_value = make_response(
            headers={"Content-Type": "image/jpeg"}, chunks=[b"abc", b"def"],
        )
        cache = PhotoCache(tmp_path / "photos", session=session)

        first = cache.fetch("https://example.org/orca.jpg")
        second = cache.fetch("https://example.org/orca.jpg")

        assert first == second
        assert first.suffix == ".jpg"
        assert first.read_bytes() == b"abcdef"
        assert session.get.call_count == 1

    def test_rejects_non_image(self, tmp_path, session):
        """HTML pages are not photos."""
        session.get.return_value = make_response(headers={"Content-Type": "text/html"})
        with pytest.raises(PhotoDownloadError):
            PhotoCache(tmp_path, session=session).fetch("https://example.org/page")

    def test_rejects_oversized(self, tmp_path, session):
        """Bodies over max_bytes are refused and nothing is cached."""
        session.get.return_value = make_response(
            headers={"Content-Type": "image/png"}, chunks=[b"x" * 8, b"x" * 8],
        )
        cache = PhotoCache(tmp_path / "photos", max_bytes=10, session=session)
        with pytest.raises(PhotoDownloadError):
            cache.fetch("https://example.org/big.png")
        assert cache.cached_path("https://example.org/big.png") is None

    def test_rejects_bad_scheme(self, tmp_path, session):
        """Only http(s) URLs are fetched."""
        with pytest.raises(PhotoDownloadError):
            PhotoCache(tmp_path, session=session).fetch("ftp://example.org/a.jpg")
        session.get.assert_not_called()

    def test_http_error(self, tmp_path, session):
        """Non-2xx responses fail the download."""
        session.get.return_value = make_response(404)
        with pytest.raises(PhotoDownloadError, match="404"):
            PhotoCache(tmp_path, session=session).fetch("https://example.org/gone.jpg")
