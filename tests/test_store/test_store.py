"""Tests for apiharmony.store -- loads, failures, last-load-wins."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from apiharmony.exit_codes import (
    EXIT_BUNDLE_ERROR,
    EXIT_FETCH_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_PARSE_ERROR,
    EXIT_VALIDATION_ERROR,
)
from apiharmony.ingest.detector import parse_document
from apiharmony.models import RawSpecInput, SpecOrigin
from apiharmony.output import OutputManager
from apiharmony.store import (
    SpecStore,
    derive_name,
    dump_yaml,
    get_store,
    reset_store,
)

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"
PETSTORE_URL = "https://petstore3.swagger.io/api/v3/openapi.yaml"


@pytest.fixture
def store(quiet_output: OutputManager) -> SpecStore:
    return SpecStore()


class TestInitialState:
    def test_empty(self, store: SpecStore) -> None:
        snap = store.snapshot()
        assert snap.document is None
        assert snap.loading is False
        assert snap.error is None
        assert snap.id is None


class TestLoad:
    def test_load_file(self, store: SpecStore) -> None:
        result = store.load_file(str(FIXTURES_DIR / "petstore_3.0.yaml"))
        assert result.success is True
        assert result.exit_code == 0
        assert result.warning is None

        snap = store.snapshot()
        assert snap.name == "petstore_3.0.yaml"
        assert snap.id.startswith("local-")
        assert snap.id == result.id
        assert snap.document.info["title"] == "Petstore API"
        assert snap.loading is False
        assert snap.version_overridden is False

    def test_raw_text_is_yaml_of_document(self, store: SpecStore) -> None:
        store.load_file(str(FIXTURES_DIR / "swagger_2.0.json"))
        snap = store.snapshot()
        assert yaml.safe_load(snap.raw_text) == snap.document.document
        assert parse_document(snap.raw_text)["swagger"] == "2.0"

    def test_each_load_gets_new_id(self, store: SpecStore) -> None:
        first = store.load_file(str(FIXTURES_DIR / "swagger_2.0.json"))
        second = store.load_file(str(FIXTURES_DIR / "swagger_2.0.json"))
        assert first.id != second.id

    def test_url_scenario(self, store: SpecStore, http_response, petstore_yaml_text: str) -> None:
        response = http_response(PETSTORE_URL, text=petstore_yaml_text)
        with patch("apiharmony.ingest.fetcher.httpx.get", return_value=response):
            result = store.load_url(PETSTORE_URL)
        assert result.success
        snap = store.snapshot()
        assert snap.name == "openapi.yaml"
        assert snap.document.info["title"]
        assert snap.version_overridden is False

    def test_url_scenario_async(
        self, store: SpecStore, http_response, petstore_yaml_text: str
    ) -> None:
        response = http_response(PETSTORE_URL, text=petstore_yaml_text)
        with patch("apiharmony.ingest.fetcher.httpx.get", return_value=response):
            result = asyncio.run(store.load_url_async(PETSTORE_URL))
        assert result.success
        assert store.snapshot().name == "openapi.yaml"
        assert store.snapshot().loading is False

    def test_override_scenario(self, store: SpecStore) -> None:
        text = '{"openapi":"3.0.9","info":{"title":"T","version":"1"},"paths":{}}'
        result = store.load_text(text, filename="spec.json")
        assert result.success
        assert result.version_overridden is True
        assert result.original_version == "3.0.9"
        assert "3.0.9" in result.warning
        assert "3.0.3" in result.warning

        snap = store.snapshot()
        assert snap.name == "spec.json"
        assert snap.document.document["openapi"] == "3.0.3"
        assert snap.version_overridden is True

    def test_404_html_scenario(self, store: SpecStore, http_response) -> None:
        url = "https://example.com/missing/openapi.yaml"
        response = http_response(url, 404, "<html><body><h1>404</h1></body></html>", "text/html")
        with patch("apiharmony.ingest.fetcher.httpx.get", return_value=response):
            result = store.load_url(url)
        assert result.success is False
        assert result.exit_code == EXIT_FETCH_ERROR
        error = store.snapshot().error
        assert "404" in error
        assert "<" not in error and ">" not in error

    def test_pasted_text_name(self, store: SpecStore, tiny_yaml: str) -> None:
        store.load_text(tiny_yaml)
        assert store.snapshot().name == "pasted-spec"


class TestFailures:
    def test_parse_error_keeps_previous_document(self, store: SpecStore) -> None:
        store.load_file(str(FIXTURES_DIR / "petstore_3.0.yaml"))
        before = store.snapshot()

        result = store.load_text("{{{ not yaml or json", filename="broken.json")
        assert result.success is False
        assert result.exit_code == EXIT_PARSE_ERROR

        after = store.snapshot()
        assert after.error
        assert after.loading is False
        assert after.document is before.document
        assert after.id == before.id
        assert after.raw_text == before.raw_text

    def test_missing_version_key_is_parse_error(self, store: SpecStore) -> None:
        result = store.load_text('{"info": {"title": "T"}}')
        assert result.exit_code == EXIT_PARSE_ERROR
        assert store.snapshot().document is None

    def test_validation_error(self, store: SpecStore) -> None:
        result = store.load_text('{"openapi": "3.0.3", "paths": {}}')
        assert result.success is False
        assert result.exit_code == EXIT_VALIDATION_ERROR
        assert "info" in result.error

    def test_next_load_clears_error(self, store: SpecStore, tiny_yaml: str) -> None:
        store.load_text("nonsense: [")
        assert store.snapshot().error
        store.load_text(tiny_yaml)
        assert store.snapshot().error is None

    def test_unexpected_exception_is_caught(self, store: SpecStore, tiny_yaml: str) -> None:
        with patch("apiharmony.store.ingest", side_effect=RuntimeError("boom")):
            result = store.load_text(tiny_yaml)
        assert result.success is False
        assert result.exit_code == EXIT_GENERIC_FAILURE
        assert result.error == "Error processing specification: boom"

    def test_remote_spec_cannot_read_local_files(
        self, store: SpecStore, http_response, tmp_path: Path
    ) -> None:
        secret = tmp_path / "secret.yaml"
        secret.write_text("Secret:\n  description: TOPSECRET\n", encoding="utf-8")
        url = "https://evil.example/api.yaml"
        body = (
            "openapi: 3.0.3\n"
            "info: {title: Evil, version: '1'}\n"
            "paths: {}\n"
            "components:\n"
            "  schemas:\n"
            f"    Leak:\n      $ref: '{secret.as_uri()}#/Secret'\n"
        )
        with patch("apiharmony.ingest.fetcher.httpx.get", return_value=http_response(url, text=body)):
            result = store.load_url(url)
        assert result.success is False
        assert result.exit_code == EXIT_BUNDLE_ERROR
        assert "not allowed from remote documents" in result.error
        snap = store.snapshot()
        assert snap.document is None
        assert snap.raw_text is None
        assert "TOPSECRET" not in result.error


class TestClear:
    def test_clear_resets(self, store: SpecStore, tiny_yaml: str) -> None:
        store.load_text(tiny_yaml)
        store.clear()
        snap = store.snapshot()
        assert snap.document is None
        assert snap.name is None
        assert snap.raw_text is None


class TestLastLoadWins:
    def test_loading_visible_while_in_flight(self, store: SpecStore, tiny_yaml: str) -> None:
        store.load_file(str(FIXTURES_DIR / "swagger_2.0.json"))
        seen = {}

        def produce() -> RawSpecInput:
            snap = store.snapshot()
            seen["loading"] = snap.loading
            seen["title"] = snap.document.info["title"]
            return RawSpecInput(text=tiny_yaml, origin=SpecOrigin.TEXT)

        store._load(produce)
        assert seen == {"loading": True, "title": "User Service"}
        assert store.snapshot().loading is False

    def test_stale_result_discarded(self, store: SpecStore, tiny_yaml: str, swagger_json_text: str) -> None:
        def slow_produce() -> RawSpecInput:
            # A second load starts and finishes while this one is in flight.
            store.load_text(swagger_json_text, filename="second.json")
            return RawSpecInput(text=tiny_yaml, origin=SpecOrigin.FILE, location="first.yaml")

        result = store._load(slow_produce)
        assert result.superseded is True
        snap = store.snapshot()
        assert snap.name == "second.json"
        assert snap.loading is False

    def test_stale_failure_discarded(self, store: SpecStore, swagger_json_text: str) -> None:
        def failing() -> RawSpecInput:
            store.load_text(swagger_json_text, filename="second.json")
            return RawSpecInput(text="::", origin=SpecOrigin.TEXT)

        result = store._load(failing)
        assert result.superseded is True
        assert result.success is False
        assert store.snapshot().error is None

    def test_clear_invalidates_in_flight_load(self, store: SpecStore, tiny_yaml: str) -> None:
        def produce() -> RawSpecInput:
            store.clear()
            return RawSpecInput(text=tiny_yaml, origin=SpecOrigin.TEXT)

        result = store._load(produce)
        assert result.superseded is True
        assert store.snapshot().document is None

    def test_async_slow_first_load_does_not_overwrite(
        self, store: SpecStore, tiny_yaml: str, swagger_json_text: str
    ) -> None:
        release = threading.Event()

        def slow() -> RawSpecInput:
            release.wait(timeout=5)
            return RawSpecInput(text=tiny_yaml, origin=SpecOrigin.FILE, location="slow.yaml")

        async def scenario():
            first = asyncio.create_task(store._load_async(slow))
            await asyncio.sleep(0)
            second = await store.load_async(
                RawSpecInput(text=swagger_json_text, origin=SpecOrigin.FILE, location="fast.json")
            )
            release.set()
            return await first, second

        first, second = asyncio.run(scenario())
        assert second.success and not second.superseded
        assert first.superseded
        assert store.snapshot().name == "fast.json"


class TestHelpers:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://petstore3.swagger.io/api/v3/openapi.yaml", "openapi.yaml"),
            ("https://example.com/specs/api.json?version=2", "api.json"),
            ("https://example.com/docs/", "docs"),
            ("https://example.com", "openapi-spec-from-url"),
            ("https://example.com/my%20api.yaml", "my api.yaml"),
        ],
    )
    def test_derive_name_from_url(self, url: str, expected: str) -> None:
        raw = RawSpecInput(text="", origin=SpecOrigin.URL, location=url)
        assert derive_name(raw) == expected

    def test_dump_yaml_has_no_aliases(self) -> None:
        shared = {"type": "string"}
        text = dump_yaml({"a": shared, "b": shared})
        assert "&" not in text and "*" not in text

    def test_dump_yaml_keeps_key_order(self) -> None:
        text = dump_yaml({"openapi": "3.0.3", "info": {}, "paths": {}})
        assert text.index("openapi") < text.index("info") < text.index("paths")

    def test_process_wide_store(self) -> None:
        store = get_store()
        assert get_store() is store
        reset_store()
        assert get_store() is not store
