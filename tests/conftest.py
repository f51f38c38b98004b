"""Shared test fixtures for apiharmony.

Provides reusable fixtures for loading spec fixtures, building validated
documents, creating isolated config environments, managing output state, and
running CLI commands. These fixtures are automatically discovered by pytest
and available to all test modules without explicit imports.
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any

import httpx
import requests
import pytest

from apiharmony.models import OpenAPI3Document, Swagger2Document
from apiharmony.output import OutputFormat, OutputManager, reset_output, set_output
from apiharmony.store import reset_store


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_globals_between_tests() -> None:
    """Reset the global OutputManager and store after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()
    reset_store()


# ---------------------------------------------------------------------------
# Raw spec fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_yaml_text() -> str:
    """Text of the petstore OpenAPI 3.0.3 fixture."""
    return (FIXTURES_DIR / "petstore_3.0.yaml").read_text(encoding="utf-8")


@pytest.fixture
def swagger_json_text() -> str:
    """Text of the Swagger 2.0 fixture."""
    return (FIXTURES_DIR / "swagger_2.0.json").read_text(encoding="utf-8")


@pytest.fixture
def minimal_v3() -> dict[str, Any]:
    """Smallest valid OpenAPI 3.0 document."""
    return {"openapi": "3.0.3", "info": {"title": "T", "version": "1"}, "paths": {}}


@pytest.fixture
def tiny_yaml() -> str:
    return textwrap.dedent("""\
        openapi: 3.0.1
        info:
          title: Tiny
          version: "1.0"
        paths: {}
    """)


# ---------------------------------------------------------------------------
# Validated document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_doc(quiet_output: OutputManager) -> OpenAPI3Document:
    """Validated petstore 3.0 document."""
    from apiharmony.ingest import ingest, read_spec_file

    return ingest(read_spec_file(FIXTURES_DIR / "petstore_3.0.yaml"))


@pytest.fixture
def swagger_doc(quiet_output: OutputManager) -> Swagger2Document:
    """Validated Swagger 2.0 document."""
    from apiharmony.ingest import ingest, read_spec_file

    return ingest(read_spec_file(FIXTURES_DIR / "swagger_2.0.json"))


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def make_response(
    url: str,
    status_code: int = 200,
    text: str = "",
    content_type: str = "application/yaml",
) -> httpx.Response:
    """Build an ``httpx.Response`` as returned by ``httpx.get``."""
    return httpx.Response(
        status_code=status_code,
        text=text,
        headers={"content-type": content_type},
        request=httpx.Request("GET", url),
    )


@pytest.fixture
def http_response():
    """Factory fixture around :func:`make_response`."""
    return make_response


def make_requests_response(
    url: str,
    text: str = "",
    content_type: str = "application/yaml",
    status_code: int = 200,
) -> requests.Response:
    """Build a ``requests.Response`` as returned by ``requests.get``.

    External ``$ref`` documents are fetched through ``requests``.
    """
    response = requests.Response()
    response.status_code = status_code
    response._content = text.encode("utf-8")
    response.encoding = "utf-8"
    response.headers["content-type"] = content_type
    response.url = url
    return response


@pytest.fixture
def ref_response():
    """Factory fixture around :func:`make_requests_response`."""
    return make_requests_response


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config, and clears all APIHARMONY_* environment variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["APIHARMONY_TIMEOUT", "APIHARMONY_NO_CACHE", "APIHARMONY_USER_AGENT"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN-format output manager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format output manager for the test."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
