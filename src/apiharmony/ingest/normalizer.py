"""Downgrade OpenAPI 3.0.x versions the validator does not know to 3.0.3.

The meta-schema validator recognises OpenAPI 3.0.0 through 3.0.3. Documents
declaring a later 3.0 patch release are rewritten to ``3.0.3`` so they can be
validated at all. This is a compatibility shim, not a conversion: the result
is reported as ``version_overridden`` so callers can warn that fidelity to the
original document is not guaranteed.

Only ``3.0.<n>`` with an integer ``n`` greater than 3 is eligible. OpenAPI
3.1.x, Swagger 2.x and documents without an ``openapi`` field pass through.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from apiharmony.models import SUPPORTED_OAS30_CEILING, NormalizedDocument
from apiharmony.output import warning

_OAS30_RE = re.compile(r"^3\.0\.(\d+)$")
_CEILING_PATCH = int(SUPPORTED_OAS30_CEILING.rsplit(".", 1)[1])


def needs_version_override(version: Any) -> bool:
    """True if *version* is ``3.0.<n>`` with ``n`` above the supported ceiling.

    The patch number is compared as an integer, so ``3.0.10`` is newer than
    ``3.0.3``.
    """
    if not isinstance(version, str):
        return False
    match = _OAS30_RE.match(version.strip())
    return match is not None and int(match.group(1)) > _CEILING_PATCH


def normalize_version(
    document: dict[str, Any],
    source: Optional[str] = None,
) -> NormalizedDocument:
    """Apply the 3.0.x version override to a parsed document.

    The input mapping is not mutated; an overridden document is a shallow
    copy with a new ``openapi`` value.

    Args:
        document: A parsed document from
            :func:`~apiharmony.ingest.detector.parse_document`.
        source: Optional URL or file name, used in the warning.

    Returns:
        A :class:`~apiharmony.models.NormalizedDocument` recording whether an
        override happened and the original version string.
    """
    version = document.get("openapi")
    if not needs_version_override(version):
        return NormalizedDocument(document=document)

    where = f" for {source}" if source else ""
    warning(
        f"Overriding OpenAPI version {version} with {SUPPORTED_OAS30_CEILING}{where}. "
        "Full parsing not guaranteed."
    )
    patched = dict(document)
    patched["openapi"] = SUPPORTED_OAS30_CEILING
    return NormalizedDocument(
        document=patched,
        version_overridden=True,
        original_version=version,
    )
