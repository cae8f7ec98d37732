"""
Tests for Data Providers

Static, sample, spreadsheet, remote and multi-source providers.
"""

import json
from unittest.mock import Mock

import httpx
import pytest

from pathfinder.common.sheets_client import SheetsClient, SheetsError
from pathfinder.providers import (
    SAMPLE_ITEMS,
    BaseProvider,
    MultiSourceProvider,
    ProviderResult,
    RemoteProvider,
    SampleProvider,
    SpreadsheetProvider,
    StaticProvider,
)
from pathfinder.providers.remote import resolve_path
from pathfinder.providers.spreadsheet import normalize_header, rows_to_items


def mock_http(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestStaticProviders:
    def test_sample_provider_has_five_items(self, config):
        result = SampleProvider().load_data(config)
        assert result.success
        assert len(result.data) == 5
        assert sum(1 for item in result.data if item["category"] == "Programming") == 1

    def test_loads_are_copies(self, config):
        provider = StaticProvider([{"title": "A", "tags": ["x"]}])
        provider.load_data(config).data[0]["tags"].append("y")
        assert provider.load_data(config).data[0]["tags"] == ["x"]

    def test_validate_data(self):
        report = BaseProvider.validate_data(SampleProvider(), [{"title": "ok"}, {"title": ""}, "junk"])
        assert not report.valid
        assert report.errors == ["item 1 has no title", "item 2 is not a mapping"]

    def test_sample_items_validate(self):
        assert SampleProvider().validate_data(SAMPLE_ITEMS).valid

    def test_metadata(self):
        meta = StaticProvider([{"title": "A"}], source_name="fixture").get_metadata()
        assert meta == {"source": "fixture", "type": "StaticProvider", "item_count": 1}


class TestSpreadsheetProvider:
    def test_header_normalization(self):
        assert normalize_header("  Target   Role ") == "target_role"

    def test_rows_to_items(self):
        rows = [
            ["Title", "Category", "Level"],
            ["Python", "Programming", "Beginner"],
            ["", " ", ""],
            ["Short row"],
        ]
        assert rows_to_items(rows) == [
            {"title": "Python", "category": "Programming", "level": "Beginner"},
            {"title": "Short row", "category": "", "level": ""},
        ]

    def test_load(self, config):
        client = Mock(spec=SheetsClient)
        client.get_values.return_value = [["Title"], ["Python"]]
        result = SpreadsheetProvider(client, range_name="Catalog!A1:Z").load_data(config)

        assert result.success
        assert result.data == [{"title": "Python"}]
        client.get_values.assert_called_once_with("Catalog!A1:Z")

    def test_sheets_error_is_reported(self, config):
        client = Mock(spec=SheetsClient)
        client.get_values.side_effect = SheetsError("Sheets API error 404: not found")
        result = SpreadsheetProvider(client).load_data(config)
        assert not result.success
        assert "404" in result.error

    def test_empty_range_is_failure(self, config):
        client = Mock(spec=SheetsClient)
        client.get_values.return_value = []
        assert not SpreadsheetProvider(client).load_data(config).success


class TestSheetsClient:
    def test_get_values(self):
        def handler(request):
            assert request.url.path == "/v4/spreadsheets/sheet-1/values/Catalog!A1:Z"
            return httpx.Response(200, json={"values": [["Title"], ["Python"]]})

        client = SheetsClient("sheet-1", http_client=mock_http(handler))
        assert client.get_values("Catalog!A1:Z") == [["Title"], ["Python"]]

    def test_append_row(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"updates": {}})

        SheetsClient("sheet-1", http_client=mock_http(handler)).append_row("SessionLog", ["a", 1])
        assert seen["path"] == "/v4/spreadsheets/sheet-1/values/SessionLog:append"
        assert seen["params"]["valueInputOption"] == "RAW"
        assert seen["body"] == {"values": [["a", 1]]}

    def test_ensure_sheet_creates_missing_sheet(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.method == "GET":
                return httpx.Response(200, json={"sheets": [{"properties": {"title": "Catalog"}}]})
            return httpx.Response(200, json={})

        client = SheetsClient("sheet-1", http_client=mock_http(handler))
        assert client.ensure_sheet("SessionLog", ["timestamp"]) is True
        assert ("POST", "/v4/spreadsheets/sheet-1:batchUpdate") in calls
        assert ("POST", "/v4/spreadsheets/sheet-1/values/SessionLog:append") in calls

    def test_ensure_sheet_existing(self):
        client = SheetsClient(
            "sheet-1",
            http_client=mock_http(lambda r: httpx.Response(200, json={"sheets": [{"properties": {"title": "SessionLog"}}]})),
        )
        assert client.ensure_sheet("SessionLog", ["timestamp"]) is False

    def test_http_error_raises_sheets_error(self):
        client = SheetsClient("sheet-1", http_client=mock_http(lambda r: httpx.Response(403, text="forbidden")))
        with pytest.raises(SheetsError, match="403"):
            client.get_values("Catalog")

    def test_spreadsheet_id_required(self):
        with pytest.raises(ValueError):
            SheetsClient("")


class TestRemoteProvider:
    def test_resolve_path(self):
        payload = {"data": {"courses": [{"title": "A"}]}, "pages": [{"items": [1]}]}
        assert resolve_path(payload, "data.courses") == [{"title": "A"}]
        assert resolve_path(payload, "pages.0.items") == [1]
        assert resolve_path(payload, "data.missing") is None
        assert resolve_path(payload, "") is payload

    def test_bearer_auth_and_data_path(self, config):
        def handler(request):
            assert request.headers["Authorization"] == "Bearer secret"
            assert request.url.params["active"] == "true"
            return httpx.Response(200, json={"data": {"courses": [{"title": "Remote course"}, "junk"]}})

        provider = RemoteProvider(
            "https://lms.example.com/api/courses",
            params={"active": "true"},
            auth_type="bearer",
            auth_token="secret",
            data_path="data.courses",
            http_client=mock_http(handler),
        )
        result = provider.load_data(config)
        assert result.success
        assert result.data == [{"title": "Remote course"}]

    def test_api_key_header_and_post_body(self, config):
        def handler(request):
            assert request.method == "POST"
            assert request.headers["X-Token"] == "k-123"
            assert json.loads(request.content) == {"query": "all"}
            return httpx.Response(200, json=[{"title": "A"}])

        provider = RemoteProvider(
            "https://lms.example.com/search",
            method="post",
            body={"query": "all"},
            auth_type="api_key",
            auth_token="k-123",
            api_key_header="X-Token",
            http_client=mock_http(handler),
        )
        assert provider.load_data(config).data == [{"title": "A"}]

    def test_http_error_status(self, config):
        provider = RemoteProvider("https://x.example.com", http_client=mock_http(lambda r: httpx.Response(500)))
        result = provider.load_data(config)
        assert not result.success
        assert "HTTP 500" in result.error

    def test_non_list_at_path(self, config):
        provider = RemoteProvider(
            "https://x.example.com",
            data_path="data",
            http_client=mock_http(lambda r: httpx.Response(200, json={"data": {"title": "A"}})),
        )
        assert not provider.load_data(config).success

    def test_transport_error(self, config):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = RemoteProvider("https://x.example.com", http_client=mock_http(handler)).load_data(config)
        assert not result.success
        assert "refused" in result.error

    def test_non_json_body(self, config):
        provider = RemoteProvider("https://x.example.com", http_client=mock_http(lambda r: httpx.Response(200, text="<html>")))
        assert provider.load_data(config).error == "Remote source did not return JSON"


class TestMultiSourceProvider:
    class Broken(BaseProvider):
        def __init__(self):
            super().__init__("broken")

        def load_data(self, config):
            return ProviderResult.failed("offline")

    class Exploding(BaseProvider):
        def __init__(self):
            super().__init__("exploding")

        def load_data(self, config):
            raise RuntimeError("boom")

    def test_concatenates_in_order_and_tags_items(self, config):
        provider = MultiSourceProvider([
            StaticProvider([{"title": "A"}], source_name="first"),
            self.Broken(),
            StaticProvider([{"title": "B"}], source_name="second"),
        ])
        result = provider.load_data(config)

        assert result.success
        assert result.data == [{"title": "A", "_provider": "first"}, {"title": "B", "_provider": "second"}]
        assert result.metadata["errors"] == ["broken: offline"]
        assert [s["success"] for s in result.metadata["sources"]] == [True, False, True]

    def test_exception_in_source_is_isolated(self, config, caplog):
        provider = MultiSourceProvider([self.Exploding(), StaticProvider([{"title": "A"}])], tag_items=False)
        result = provider.load_data(config)
        assert result.data == [{"title": "A"}]
        assert "boom" in caplog.text

    def test_fails_only_when_all_sources_fail(self, config):
        result = MultiSourceProvider([self.Broken(), self.Exploding()]).load_data(config)
        assert not result.success
        assert "All data sources failed" in result.error

    def test_no_sources(self, config):
        assert not MultiSourceProvider([]).load_data(config).success

    def test_metadata_lists_inner_providers(self):
        meta = MultiSourceProvider([SampleProvider()]).get_metadata()
        assert meta["providers"][0]["source"] == "sample"


class TestMultiSourceValidation:
    class LoadOnly:
        def load_data(self, config):
            return ProviderResult.ok([{"title": "Extra"}])

    class BrokenValidation(StaticProvider):
        def validate_data(self, data):
            raise ValueError("bad schema")

    def test_source_without_validate_data_is_kept(self, config):
        result = MultiSourceProvider([SampleProvider(), self.LoadOnly()]).load_data(config)
        assert result.success
        assert len(result.data) == 6
        assert result.data[-1] == {"title": "Extra", "_provider": "LoadOnly"}
        assert result.metadata["errors"] == []

    def test_validation_exception_does_not_abort_aggregate(self, config, caplog):
        provider = MultiSourceProvider([
            self.BrokenValidation([{"title": "A"}], source_name="first"),
            StaticProvider([{"title": "B"}], source_name="second"),
        ])
        result = provider.load_data(config)
        assert [item["title"] for item in result.data] == ["A", "B"]
        assert "bad schema" in caplog.text

    def test_metadata_with_plain_source(self):
        meta = MultiSourceProvider([self.LoadOnly()]).get_metadata()
        assert meta["providers"] == [{"type": "LoadOnly"}]
