"""Validate a normalised document and bundle its ``$ref`` pointers.

Bundling produces a single self-contained tree:

* **External** references (``common.yaml#/Pet``, ``https://host/x.json``) are
  resolved with :class:`prance.util.resolver.RefResolver` relative to the
  referencing document and inlined. References inside an inlined document
  are inlined too, since they point into a document that is not part of the
  result. ``file:`` references are followed only when the root document was
  read from disk.
* **Internal** references (``#/components/schemas/Pet``) are kept as they
  are -- the reference graph is built from them -- but every one of them
  must resolve.

A reference that cannot be fetched, parsed or followed raises
:class:`~apiharmony.exceptions.BundleError`. A recursive external target is
kept as an internal ``$ref`` to the place in the root document that includes
it; if the root document does not include it anywhere, bundling fails.
Bundling an already bundled document changes nothing.

After bundling, the tree is checked against the OpenAPI/Swagger meta-schema
with ``openapi-spec-validator``; every violation is collected into a
:class:`~apiharmony.exceptions.ValidationError`.

:func:`dereference` additionally inlines internal references for views that
want fully expanded schemas; internal cycles are left as ``$ref`` dicts.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Iterator, Optional, Union
from urllib.parse import ParseResult, unquote, urljoin, urlparse

from openapi_spec_validator import (
    OpenAPIV2SpecValidator,
    OpenAPIV30SpecValidator,
    OpenAPIV31SpecValidator,
)
from prance.util.resolver import RESOLVE_FILES, RESOLVE_HTTP, RefResolver
from prance.util.url import ResolutionError, absurl, urlresource
from ruamel.yaml.error import YAMLError

from apiharmony.exceptions import (
    BundleError,
    ParseError,
    UnsupportedVersionError,
    ValidationError,
)
from apiharmony.ingest.detector import detect_version, stringify_keys
from apiharmony.ingest.normalizer import needs_version_override, normalize_version
from apiharmony.models import (
    SUPPORTED_OAS30_CEILING,
    NormalizedDocument,
    OpenAPI3Document,
    Swagger2Document,
)
from apiharmony.output import debug

_OAS30_SUPPORTED_RE = re.compile(r"^3\.0\.[0-3]$")
_OAS31_RE = re.compile(r"^3\.1\.\d+$")
_MAX_REPORTED_VIOLATIONS = 10
_REMOTE_SCHEMES = ("http", "https")


def validate_and_bundle(
    normalized: NormalizedDocument,
    base_uri: Optional[str] = None,
) -> Union[Swagger2Document, OpenAPI3Document]:
    """Bundle and validate a normalised document.

    If the document declares a 3.0.x version above 3.0.3 that the
    normaliser did not already rewrite, the override is applied once and the
    whole step is retried exactly once. A failure of the retry is re-raised
    with a message prefixed to say an override was attempted.

    Args:
        normalized: Output of :func:`~apiharmony.ingest.normalizer.normalize_version`.
        base_uri: URI of the document itself; relative external references
            are resolved against it.

    Returns:
        A :class:`~apiharmony.models.Swagger2Document` or
        :class:`~apiharmony.models.OpenAPI3Document`.

    Raises:
        UnsupportedVersionError: The declared version is not supported.
        ValidationError: The bundled tree violates the meta-schema.
        BundleError: A ``$ref`` could not be resolved.
    """
    try:
        return _validate_and_bundle_once(normalized, base_uri)
    except UnsupportedVersionError as exc:
        if not exc.retryable or normalized.version_overridden:
            raise
        retried = normalize_version(normalized.document)
        if not retried.version_overridden:
            raise
        debug(f"Retrying validation with version {SUPPORTED_OAS30_CEILING}")
        prefix = (
            f"Version override from {exc.version} to {SUPPORTED_OAS30_CEILING} attempted: "
        )
        try:
            return _validate_and_bundle_once(retried, base_uri)
        except ValidationError as retry_exc:
            raise ValidationError(
                prefix + str(retry_exc), violations=retry_exc.violations
            ) from retry_exc
        except BundleError as retry_exc:
            raise BundleError(prefix + str(retry_exc)) from retry_exc


def _validate_and_bundle_once(
    normalized: NormalizedDocument,
    base_uri: Optional[str],
) -> Union[Swagger2Document, OpenAPI3Document]:
    try:
        kind, version = detect_version(normalized.document)
    except ParseError as exc:
        raise ValidationError(str(exc), violations=[str(exc)]) from exc
    validator_cls = _select_validator(kind, version)

    bundled = bundle(normalized.document, base_uri=base_uri)
    violations = collect_violations(validator_cls, bundled)
    if violations:
        shown = violations[:_MAX_REPORTED_VIOLATIONS]
        msg = f"Specification is not a valid {'Swagger' if kind == 'swagger' else 'OpenAPI'} {version} document"
        for violation in shown:
            msg += f"\n  - {violation}"
        if len(violations) > len(shown):
            msg += f"\n  ... and {len(violations) - len(shown)} more"
        raise ValidationError(msg, violations=violations)

    model = Swagger2Document if kind == "swagger" else OpenAPI3Document
    return model(
        document=bundled,
        version=version,
        version_overridden=normalized.version_overridden,
        original_version=normalized.original_version,
    )


def _select_validator(kind: str, version: str) -> type:
    """Pick the meta-schema validator class for a declared version."""
    if kind == "swagger":
        if version == "2.0":
            return OpenAPIV2SpecValidator
        raise UnsupportedVersionError(
            f"Unsupported Swagger version: {version}. Only Swagger 2.0 is supported.",
            version=version,
        )

    if needs_version_override(version):
        raise UnsupportedVersionError(
            f"Unsupported OpenAPI version: {version}. The validator supports "
            f"OpenAPI 3.0.0 to {SUPPORTED_OAS30_CEILING} and 3.1.x.",
            version=version,
            retryable=True,
        )
    if _OAS30_SUPPORTED_RE.match(version):
        return OpenAPIV30SpecValidator
    if _OAS31_RE.match(version):
        return OpenAPIV31SpecValidator
    raise UnsupportedVersionError(
        f"Unsupported OpenAPI version: {version}. The validator supports "
        f"OpenAPI 3.0.0 to {SUPPORTED_OAS30_CEILING} and 3.1.x.",
        version=version,
    )


def collect_violations(validator_cls: type, document: dict[str, Any]) -> list[str]:
    """Run the meta-schema validator and return one line per violation."""
    validator = validator_cls(document)
    violations: list[str] = []
    for err in validator.iter_errors():
        location = "/".join(str(p) for p in getattr(err, "absolute_path", []) or [])
        message = getattr(err, "message", None) or str(err)
        violations.append(f"{location}: {message}" if location else message)
    return violations


# --------------------------------------------------------------------------- #
# Bundling
# --------------------------------------------------------------------------- #


def bundle(document: dict[str, Any], base_uri: Optional[str] = None) -> dict[str, Any]:
    """Return a deep copy of *document* with every external ``$ref`` inlined.

    Args:
        document: Parsed root document. It is not modified.
        base_uri: URI of the root document. ``file:`` references are only
            followed when it uses the ``file`` scheme.

    Raises:
        BundleError: If a reference is dangling, unreachable or unparsable,
            if an external reference appears in a document without a base
            location, or if a remote document refers to a local file.
    """
    root = copy.deepcopy(document)
    external = [
        node["$ref"] for _, node in _iter_ref_nodes(root) if not node["$ref"].startswith("#")
    ]
    if external:
        if base_uri is None:
            raise BundleError(
                f"Cannot resolve external $ref '{external[0]}': the document has no base location"
            )
        root = _resolve_external(root, base_uri)
    _check_refs(root, base_uri)
    return root


def _resolve_external(root: dict[str, Any], base_uri: str) -> dict[str, Any]:
    resolve_types = RESOLVE_HTTP
    if urlparse(base_uri).scheme == "file":
        resolve_types |= RESOLVE_FILES
        # prance opens file URL paths as they are written.
        resolver_url = unquote(base_uri)
    else:
        _absolutize_refs(root, base_uri)
        resolver_url = base_uri
    try:
        resolver = _BundlingResolver(root, resolver_url, resolve_types)
        resolver.resolve_references()
    except (ResolutionError, YAMLError, ValueError, OSError) as exc:
        raise BundleError(f"Cannot resolve external $ref: {exc}") from exc
    debug(f"Resolved external references against {base_uri}")
    # Rebuilding the tree also undoes the subtree sharing of resolved targets.
    return stringify_keys(resolver.specs)


class _BundlingResolver(RefResolver):
    """A :class:`RefResolver` that leaves the root document's own refs alone.

    References that stay inside the root are kept as written. A reference
    into another document is inlined, and so is every reference inside that
    document, including one that comes back into the root. When an external
    target recurses into itself, the recursion becomes a ``$ref`` to the
    place in the root where that target is included.
    """

    def __init__(self, specs: dict[str, Any], url: str, resolve_types: int) -> None:
        root_url = absurl(url)
        self._root_resource = urlresource(root_url)
        self._resolve_types = resolve_types
        self._aliases = _external_aliases(specs, root_url)
        super().__init__(
            specs,
            url,
            resolve_types=resolve_types,
            recursion_limit=1,
            recursion_limit_handler=self._keep_ref,
            reference_cache={},
            strict=False,
        )

    def _skip_reference(self, base_url: ParseResult, ref_url: ParseResult) -> bool:
        if urlresource(ref_url) == self._root_resource:
            return urlresource(base_url) == self._root_resource
        if ref_url.scheme in _REMOTE_SCHEMES:
            return not self._resolve_types & RESOLVE_HTTP
        if ref_url.scheme == "file":
            return not self._resolve_types & RESOLVE_FILES
        raise BundleError(f"Cannot resolve $ref '{ref_url.geturl()}': unsupported location")

    def _fetch_ref_value(self, ref_url: ParseResult, obj_path: list) -> Any:
        value = super()._fetch_ref_value(ref_url, obj_path)
        if ref_url.scheme in _REMOTE_SCHEMES:
            value = copy.deepcopy(value)
            _absolutize_refs(value, urlresource(ref_url))
        return value

    def _keep_ref(self, limit: int, parsed_url: ParseResult, recursions: tuple = ()) -> dict[str, str]:
        resource = urlresource(parsed_url)
        if resource == self._root_resource:
            return {"$ref": f"#{parsed_url.fragment}"}
        alias = self._aliases.get((resource, parsed_url.fragment))
        if alias is None:
            raise BundleError(
                f"Circular external $ref '{parsed_url.geturl()}' is not included "
                "anywhere in the root document"
            )
        debug(f"Recursive $ref {parsed_url.geturl()} kept as {alias}")
        return {"$ref": alias}


def _absolutize_refs(node: Any, base: str) -> None:
    """Rewrite relative external refs in place so they are absolute against *base*."""
    for _, ref_node in _iter_ref_nodes(node):
        ref = ref_node["$ref"]
        if not ref.startswith("#") and not urlparse(ref).scheme:
            ref_node["$ref"] = urljoin(base, ref)


def _external_aliases(root: dict[str, Any], root_url: ParseResult) -> dict[tuple[str, str], str]:
    """Map each external target referenced by the root to the pointer of a site that includes it.

    Sites under ``components`` or ``definitions`` win over sites elsewhere.
    """
    sites: dict[tuple[str, str], tuple[bool, str]] = {}
    for path, node in _iter_ref_nodes(root):
        ref = node["$ref"]
        if ref.startswith("#"):
            continue
        target = absurl(ref, root_url)
        key = (urlresource(target), target.fragment)
        shared = bool(path) and path[0] in ("components", "definitions")
        if key not in sites or (shared and not sites[key][0]):
            sites[key] = (shared, _to_pointer(path))
    return {key: pointer for key, (_, pointer) in sites.items()}


def _check_refs(bundled: dict[str, Any], base_uri: Optional[str]) -> None:
    """Require every remaining ``$ref`` to be an internal ref that resolves.

    Refs naming the root document itself are rewritten to their internal form.
    """
    root_url = absurl(base_uri) if base_uri else None
    for _, node in _iter_ref_nodes(bundled):
        ref = node["$ref"]
        if not ref.startswith("#"):
            target = absurl(ref, root_url) if root_url is not None else urlparse(ref)
            if root_url is not None and urlresource(target) == urlresource(root_url):
                node["$ref"] = f"#{target.fragment}"
            elif target.scheme == "file":
                raise BundleError(
                    f"Cannot resolve $ref '{ref}': file references are not allowed "
                    "from remote documents"
                )
            else:
                raise BundleError(f"Cannot resolve $ref '{ref}'")
        resolve_pointer(bundled, node["$ref"], ref)


def _iter_ref_nodes(node: Any, path: tuple = ()) -> Iterator[tuple[tuple, dict[str, Any]]]:
    if isinstance(node, dict):
        if isinstance(node.get("$ref"), str):
            yield path, node
            return
        for key, value in node.items():
            yield from _iter_ref_nodes(value, path + (key,))
    elif isinstance(node, list):
        for index, item in enumerate(node):
            yield from _iter_ref_nodes(item, path + (str(index),))


def _to_pointer(path: tuple) -> str:
    return "#/" + "/".join(str(p).replace("~", "~0").replace("/", "~1") for p in path)


def resolve_pointer(document: Any, pointer: str, ref: Optional[str] = None) -> Any:
    """Follow a ``#/a/b`` JSON Pointer (RFC 6901) inside *document*.

    ``"#"`` (or an empty fragment) designates the whole document. Segments
    are percent-decoded and ``~1``/``~0`` unescaped.

    Raises:
        BundleError: If a segment does not exist.
    """
    ref = ref or pointer
    if pointer in ("", "#"):
        return document
    if not pointer.startswith("#/"):
        raise BundleError(f"Cannot resolve $ref '{ref}': unsupported fragment '{pointer}'")

    current: Any = document
    for raw_segment in pointer[2:].split("/"):
        segment = unquote(raw_segment).replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if segment not in current:
                raise BundleError(
                    f"Cannot resolve $ref '{ref}': key '{segment}' not found"
                )
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError) as exc:
                raise BundleError(
                    f"Cannot resolve $ref '{ref}': invalid array index '{segment}'"
                ) from exc
        else:
            raise BundleError(
                f"Cannot resolve $ref '{ref}': cannot navigate into {type(current).__name__}"
            )
    return current


# --------------------------------------------------------------------------- #
# Dereferencing
# --------------------------------------------------------------------------- #


def dereference(document: dict[str, Any]) -> dict[str, Any]:
    """Return a deep copy of a bundled document with internal refs inlined.

    A reference already being expanded on the current branch is kept as its
    ``$ref`` dict, so self-referencing schemas terminate.
    """
    root = copy.deepcopy(document)
    return _deep_resolve(root, root, frozenset())


def _deep_resolve(obj: Any, root: dict[str, Any], seen: frozenset) -> Any:
    if isinstance(obj, dict):
        ref = obj.get("$ref")
        if isinstance(ref, str) and ref.startswith("#"):
            if ref in seen:
                return obj
            return _deep_resolve(resolve_pointer(root, ref), root, seen | {ref})
        return {key: _deep_resolve(value, root, seen) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_deep_resolve(item, root, seen) for item in obj]
    return obj
