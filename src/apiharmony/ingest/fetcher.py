"""Fetch specification text from a URL or a local file.

This module does all the I/O of the ingestion pipeline and nothing else: it
returns :class:`~apiharmony.models.RawSpecInput` objects whose text has not
been parsed yet. Non-2xx responses are translated into a
:class:`~apiharmony.exceptions.FetchError` with a human-readable message
that distinguishes a missing document, an HTML error page, a JSON error body
and unrecognised content -- without ever echoing HTML markup back.

Public API:

* :func:`fetch_spec` -- GET a specification over HTTP(S).
* :func:`read_spec_file` -- read a specification from disk.
* :func:`spec_from_text` -- wrap already-read text (e.g. an uploaded file).
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Optional

import httpx

from apiharmony.cache import DocumentCache
from apiharmony.exceptions import FetchError
from apiharmony.models import FetchConfig, RawSpecInput, SpecOrigin
from apiharmony.output import debug

_ACCEPT = (
    "application/json, application/yaml, text/yaml, application/x-yaml, "
    "text/plain, */*"
)
_SPEC_CONTENT_TYPES = ("application/json", "application/yaml", "text/yaml", "text/plain")
_PREVIEW_CHARS = 100
_HTML_RE = re.compile(r"<!doctype\s+html|<html[\s>]|<body[\s>]|<head[\s>]", re.IGNORECASE)


def fetch_spec(
    url: str,
    config: Optional[FetchConfig] = None,
    cache: Optional[DocumentCache] = None,
) -> RawSpecInput:
    """Fetch a specification over HTTP(S).

    Args:
        url: Absolute ``http://`` or ``https://`` URL.
        config: Timeout, User-Agent and TLS settings. Defaults apply when
            omitted.
        cache: Optional disk cache consulted before the network.

    Returns:
        The unparsed body, with the URL as both ``location`` and ``base_uri``.

    Raises:
        FetchError: On network failure, timeout, or a non-2xx response.
    """
    text, content_type = _http_get(url, config or FetchConfig(), cache)
    return RawSpecInput(
        text=text,
        origin=SpecOrigin.URL,
        location=url,
        content_type=content_type,
        base_uri=url,
    )


def read_spec_file(path: str | Path) -> RawSpecInput:
    """Read a specification from a local file.

    The file name's extension later decides which parser is tried first;
    the containing file becomes the base for relative external ``$ref``s.

    Raises:
        FetchError: If the file does not exist, cannot be read, or is empty.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise FetchError(f"Spec file not found: {path}")
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FetchError(f"Failed to read spec file {path}: {exc}") from exc
    if not text.strip():
        raise FetchError(f"Spec file is empty: {path}")

    return RawSpecInput(
        text=text,
        origin=SpecOrigin.FILE,
        location=file_path.name,
        base_uri=file_path.resolve().as_uri(),
    )


def spec_from_text(text: str, filename: Optional[str] = None) -> RawSpecInput:
    """Wrap text that was already read, such as an uploaded file's content.

    Without a file name the input is treated as pasted text. Relative
    external ``$ref``s cannot be resolved for such inputs.
    """
    if filename:
        return RawSpecInput(text=text, origin=SpecOrigin.FILE, location=filename)
    return RawSpecInput(text=text, origin=SpecOrigin.TEXT)


def describe_http_failure(url: str, response: httpx.Response) -> str:
    """Build a human-readable message for a non-2xx response."""
    status = response.status_code
    status_text = f"{status} {response.reason_phrase or ''}".strip()
    content_type = response.headers.get("content-type", "").lower()
    body = response.text or ""
    looks_html = "text/html" in content_type or bool(_HTML_RE.search(body[:2048]))

    if status == 404:
        message = (
            f"Failed to fetch spec. External server at {url} returned status "
            "404 Not Found. Please check if the URL is correct and publicly accessible."
        )
        if looks_html:
            message += " The content appears to be an HTML page, not the API specification."
        elif body.strip() and not any(t in content_type for t in _SPEC_CONTENT_TYPES):
            message += (
                f" Unexpected content type: {content_type or 'unknown'}. "
                f"Preview (first {_PREVIEW_CHARS} chars): {_preview(body)}"
            )
        return message

    if "json" in content_type:
        try:
            payload = json.loads(body)
        except ValueError:
            return (
                f"External server at {url} returned status {status}, claimed a JSON "
                f"error response, but parsing failed. Raw response preview: {_preview(body)}"
            )
        detail = _json_error_detail(payload)
        if detail:
            return f"External server at {url} returned status {status}: {detail}"
        return (
            f"External server at {url} returned status {status} with a JSON error "
            "response that has no 'message' or 'error' field. "
            f"Raw error preview: {_preview(body)}"
        )

    if looks_html:
        return (
            f"Failed to fetch spec. External server at {url} returned an HTML page "
            f"(status {status_text}). This could be an error page, "
            "authentication prompt, or a misconfigured URL."
        )

    if body.strip():
        return (
            f"Failed to fetch spec. External server at {url} returned status "
            f"{status_text} with unexpected content. "
            f"Preview (first {_PREVIEW_CHARS} chars): {_preview(body)}"
        )

    return f"Request to {url} failed: {status_text}"


def _json_error_detail(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    for key in ("message", "error"):
        value = payload.get(key)
        if value:
            return value if isinstance(value, str) else json.dumps(value)
    return None


def _preview(body: str) -> str:
    collapsed = " ".join(body.split())
    if len(collapsed) <= _PREVIEW_CHARS:
        return collapsed
    return collapsed[:_PREVIEW_CHARS] + "..."


def _http_get(
    url: str,
    config: FetchConfig,
    cache: Optional[DocumentCache],
) -> tuple[str, Optional[str]]:
    """GET *url* and return ``(body, content_type)``; see :func:`fetch_spec`."""
    if cache is not None:
        hit = cache.get(url)
        if hit is not None:
            debug(f"Cache hit: {url}")
            return hit.text, hit.content_type

    debug(f"GET {url} (timeout {config.timeout:g}s)")
    try:
        response = httpx.get(
            url,
            headers={"User-Agent": config.user_agent, "Accept": _ACCEPT},
            timeout=config.timeout,
            follow_redirects=config.follow_redirects,
            verify=config.verify_ssl,
        )
    except httpx.TimeoutException as exc:
        raise FetchError(
            f"Timed out after {config.timeout:g}s fetching spec from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise FetchError(f"Failed to fetch spec from {url}: {exc}") from exc

    if not response.is_success:
        raise FetchError(
            describe_http_failure(url, response), status_code=response.status_code
        )

    content_type = response.headers.get("content-type")
    if cache is not None:
        cache.set(url, response.text, content_type)
    return response.text, content_type

