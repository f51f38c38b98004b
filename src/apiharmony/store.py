"""The active-specification store.

:class:`SpecStore` holds the single currently loaded specification and is the
only place that mutates it. A load runs the ingestion pipeline and either
replaces the document wholesale or records an error while keeping the
previous document visible. Callers must check ``error`` before trusting
``document``.

Loads are last-wins: every load takes a generation number when it starts,
and a result is only committed if no newer load (and no :meth:`SpecStore.clear`)
started in the meantime. A discarded result is reported with
``LoadResult.superseded``.

A process-wide default store is available through :func:`get_store`.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Callable, Optional, Union
from urllib.parse import unquote, urlparse

import yaml

from apiharmony.cache import DocumentCache
from apiharmony.exceptions import HarmonyError
from apiharmony.exit_codes import EXIT_GENERIC_FAILURE, EXIT_SUCCESS
from apiharmony.ingest import fetch_spec, ingest, read_spec_file, spec_from_text
from apiharmony.models import (
    ActiveSpecification,
    GlobalConfig,
    LoadResult,
    OpenAPI3Document,
    RawSpecInput,
    SpecOrigin,
    Swagger2Document,
)
from apiharmony.output import debug

URL_NAME_FALLBACK = "openapi-spec-from-url"
TEXT_NAME_FALLBACK = "pasted-spec"

_Validated = Union[Swagger2Document, OpenAPI3Document]


class _NoAliasDumper(yaml.SafeDumper):
    def ignore_aliases(self, data):
        return True


def dump_yaml(document: dict) -> str:
    """Serialise a document to YAML in its original key order."""
    return yaml.dump(
        document,
        Dumper=_NoAliasDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def derive_name(raw: RawSpecInput) -> str:
    """Display name for a specification: last URL path segment or file name."""
    if raw.origin == SpecOrigin.URL:
        segments = [s for s in urlparse(raw.location).path.split("/") if s]
        return unquote(segments[-1]) if segments else URL_NAME_FALLBACK
    return raw.location or TEXT_NAME_FALLBACK


class SpecStore:
    """Holds the active specification and drives loads into it.

    Args:
        config: Effective configuration; fetch settings apply to the root
            document and to external ``$ref`` documents.
        cache: Optional disk cache for HTTP fetches.

    Example::

        store = SpecStore()
        result = store.load_file("petstore.yaml")
        if not result.success:
            print(result.error)
        elif result.warning:
            print(result.warning)
    """

    def __init__(
        self,
        config: Optional[GlobalConfig] = None,
        cache: Optional[DocumentCache] = None,
    ) -> None:
        self._config = config or GlobalConfig()
        self._cache = cache
        self._state = ActiveSpecification()
        self._generation = 0

    def snapshot(self) -> ActiveSpecification:
        """Return a copy of the current state."""
        return self._state.model_copy()

    @property
    def generation(self) -> int:
        return self._generation

    # --- synchronous loads ---

    def load(self, raw: RawSpecInput) -> LoadResult:
        """Ingest already-read text. Never raises; see :class:`LoadResult`."""
        return self._load(lambda: raw)

    def load_url(self, url: str) -> LoadResult:
        """Fetch and ingest the specification at *url*."""
        return self._load(lambda: fetch_spec(url, self._config.fetch, self._cache))

    def load_file(self, path: str) -> LoadResult:
        """Read and ingest a local file."""
        return self._load(lambda: read_spec_file(path))

    def load_text(self, text: str, filename: Optional[str] = None) -> LoadResult:
        """Ingest pasted or uploaded text. *filename* selects the parser tried first."""
        return self._load(lambda: spec_from_text(text, filename))

    # --- asynchronous loads ---

    async def load_async(self, raw: RawSpecInput) -> LoadResult:
        """Like :meth:`load`, running the pipeline in a worker thread."""
        return await self._load_async(lambda: raw)

    async def load_url_async(self, url: str) -> LoadResult:
        """Like :meth:`load_url`, running fetch and pipeline in a worker thread."""
        return await self._load_async(
            lambda: fetch_spec(url, self._config.fetch, self._cache)
        )

    def clear(self) -> None:
        """Reset the store to empty and discard any in-flight load."""
        self._generation += 1
        self._state = ActiveSpecification()

    # --- internals ---

    def _load(self, produce: Callable[[], RawSpecInput]) -> LoadResult:
        token = self._begin()
        try:
            raw, validated = self._run(produce)
        except Exception as exc:
            return self._fail(token, exc)
        return self._commit(token, raw, validated)

    async def _load_async(self, produce: Callable[[], RawSpecInput]) -> LoadResult:
        token = self._begin()
        try:
            raw, validated = await asyncio.to_thread(self._run, produce)
        except Exception as exc:
            return self._fail(token, exc)
        return self._commit(token, raw, validated)

    def _run(self, produce: Callable[[], RawSpecInput]) -> tuple[RawSpecInput, _Validated]:
        raw = produce()
        return raw, ingest(raw)

    def _begin(self) -> int:
        self._generation += 1
        self._state = self._state.model_copy(update={"loading": True, "error": None})
        debug(f"Load #{self._generation} started")
        return self._generation

    def _is_stale(self, token: int) -> bool:
        if token != self._generation:
            debug(f"Load #{token} superseded by #{self._generation}; result discarded")
            return True
        return False

    def _commit(self, token: int, raw: RawSpecInput, validated: _Validated) -> LoadResult:
        spec_id = f"local-{uuid.uuid4().hex}"
        name = derive_name(raw)
        if self._is_stale(token):
            return LoadResult(success=True, superseded=True, id=spec_id, name=name)

        self._state = ActiveSpecification(
            id=spec_id,
            name=name,
            document=validated,
            raw_text=dump_yaml(validated.document),
            loading=False,
            error=None,
            version_overridden=validated.version_overridden,
            original_version=validated.original_version,
        )
        return LoadResult(
            success=True,
            exit_code=EXIT_SUCCESS,
            id=spec_id,
            name=name,
            version_overridden=validated.version_overridden,
            original_version=validated.original_version,
        )

    def _fail(self, token: int, exc: Exception) -> LoadResult:
        if isinstance(exc, HarmonyError):
            message, exit_code = str(exc), exc.exit_code
        else:
            message = f"Error processing specification: {exc}"
            exit_code = EXIT_GENERIC_FAILURE

        if self._is_stale(token):
            return LoadResult(success=False, superseded=True, error=message, exit_code=exit_code)

        self._state = self._state.model_copy(update={"loading": False, "error": message})
        return LoadResult(success=False, error=message, exit_code=exit_code)


_store: Optional[SpecStore] = None


def get_store() -> SpecStore:
    """Return the process-wide store, creating an empty one on first use."""
    global _store
    if _store is None:
        _store = SpecStore()
    return _store


def reset_store(store: Optional[SpecStore] = None) -> None:
    """Replace (or drop) the process-wide store. Used by tests and the CLI."""
    global _store
    _store = store
