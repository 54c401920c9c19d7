"""
Unit tests for reading the document and its assets.
"""

import pytest

from mdhttp.content import (
    DEFAULT_FAVICON,
    AssetRef,
    ContentLoadError,
    load_assets,
    read_asset,
    read_document,
    stylesheet_href,
)
from mdhttp.snapshot import FAVICON_ROUTE, STYLESHEET_ROUTE


class TestAssetRef:

    def test_empty_is_none(self):
        assert AssetRef.parse("") is None

    @pytest.mark.parametrize("value", ["https://cdn.example/a.css", "http://intranet/a.css"])
    def test_remote(self, value):
        ref = AssetRef.parse(value)

        assert ref.is_remote
        assert ref.url == value
        assert ref.path is None

    def test_local_path(self):
        ref = AssetRef.parse("theme.css")

        assert not ref.is_remote
        assert ref.path == "theme.css"
        assert ref.url is None

    def test_file_scheme_stripped(self):
        ref = AssetRef.parse("file:///srv/theme.css")

        assert not ref.is_remote
        assert ref.path == "/srv/theme.css"
        assert ref.value == "file:///srv/theme.css"


class TestReading:

    def test_read_document(self, markdown_file):
        assert read_document(str(markdown_file)).startswith(b"# example header")

    def test_missing_document(self, tmp_path):
        path = tmp_path / "missing.md"

        with pytest.raises(ContentLoadError) as exc_info:
            read_document(str(path))

        error = exc_info.value
        assert error.what == "markdown"
        assert error.path == str(path)
        assert isinstance(error.__cause__, FileNotFoundError)
        assert "missing.md" in str(error)

    def test_directory_is_an_error(self, tmp_path):
        with pytest.raises(ContentLoadError):
            read_document(str(tmp_path))

    def test_read_asset_remote_rejected(self):
        with pytest.raises(ValueError):
            read_asset(AssetRef.parse("https://cdn.example/a.css"))


class TestStylesheetHref:

    def test_none(self):
        assert stylesheet_href(None) is None

    def test_local_is_relative(self, css_file):
        assert stylesheet_href(AssetRef.parse(str(css_file))) == "default.css"

    def test_remote_is_verbatim(self):
        url = "https://cdn.example/theme.css"
        assert stylesheet_href(AssetRef.parse(url)) == url


class TestLoadAssets:

    def test_no_assets_configured(self):
        assets = load_assets(None, None)

        assert STYLESHEET_ROUTE not in assets
        assert assets[FAVICON_ROUTE].body == DEFAULT_FAVICON
        assert assets[FAVICON_ROUTE].content_type == "image/png"

    def test_default_favicon_is_png(self):
        assert DEFAULT_FAVICON.startswith(b"\x89PNG\r\n\x1a\n")

    def test_local_css(self, css_file):
        assets = load_assets(AssetRef.parse(f"file://{css_file}"), None)

        stylesheet = assets[STYLESHEET_ROUTE]
        assert stylesheet.content_type == "text/css; charset=utf-8"
        assert stylesheet.body == css_file.read_bytes()

    def test_remote_css_not_served(self):
        assets = load_assets(AssetRef.parse("https://cdn.example/theme.css"), None)
        assert STYLESHEET_ROUTE not in assets

    def test_local_favicon(self, tmp_path):
        icon = tmp_path / "icon.ico"
        icon.write_bytes(b"\x00\x00\x01\x00")

        assets = load_assets(None, AssetRef.parse(str(icon)))

        assert assets[FAVICON_ROUTE].body == b"\x00\x00\x01\x00"
        assert assets[FAVICON_ROUTE].content_type == "image/x-icon"

    def test_remote_favicon_falls_back_to_default(self):
        assets = load_assets(None, AssetRef.parse("https://cdn.example/icon.png"))
        assert assets[FAVICON_ROUTE].body == DEFAULT_FAVICON

    def test_missing_css(self, tmp_path):
        with pytest.raises(ContentLoadError) as exc_info:
            load_assets(AssetRef.parse(str(tmp_path / "nope.css")), None)

        assert exc_info.value.what == "css"
