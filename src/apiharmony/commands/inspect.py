"""Inspect commands -- load a specification and examine what was loaded.

Every command takes a SOURCE (an ``http(s)://`` URL or a file path), runs it
through the active-specification store, and renders one view of the
result. A failed load prints the store's error message and exits with the
code of the failure class (see :mod:`apiharmony.exit_codes`).
"""

from __future__ import annotations

from typing import Optional

import typer

from apiharmony.exit_codes import EXIT_INVALID_USAGE
from apiharmony.models import ActiveSpecification
from apiharmony.output import (
    error,
    format_response,
    get_output,
    info,
    success,
    suggest,
    warning,
)


def _is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def _load_source(ctx: typer.Context, source: str) -> ActiveSpecification:
    """Load *source* into the store and return the resulting snapshot.

    Raises:
        typer.Exit: With the failure's exit code when the load fails.
    """
    from apiharmony.cache import DocumentCache
    from apiharmony.config import get_cache_dir
    from apiharmony.models import GlobalConfig
    from apiharmony.store import SpecStore, reset_store

    config = (ctx.obj or {}).get("config") or GlobalConfig()
    cache = DocumentCache(get_cache_dir(), config.cache)
    store = SpecStore(config=config, cache=cache)
    reset_store(store)

    try:
        result = store.load_url(source) if _is_url(source) else store.load_file(source)
    finally:
        cache.close()

    if not result.success:
        error(result.error or "Failed to load specification")
        raise typer.Exit(code=result.exit_code)
    if result.warning:
        warning(result.warning)
    return store.snapshot()


def load_command(
    ctx: typer.Context,
    source: str = typer.Argument(help="URL or file path of an OpenAPI/Swagger document."),
) -> None:
    """Load a specification and print a short summary.

    Example::

        apiharmony load https://petstore3.swagger.io/api/v3/openapi.yaml
        apiharmony --json load ./openapi.json
    """
    from apiharmony.analysis import build_schema_usage

    snapshot = _load_source(ctx, source)
    document = snapshot.document
    usage = build_schema_usage(document)

    success(f"Loaded {snapshot.name}")
    format_response({
        "name": snapshot.name,
        "id": snapshot.id,
        "title": document.info.get("title", ""),
        "kind": document.kind,
        "version": document.version,
        "version_overridden": snapshot.version_overridden,
        "original_version": snapshot.original_version,
        "paths": len(document.paths),
        "schemas": len(usage),
        "unused_schemas": sum(1 for u in usage.values() if u.is_unused),
    })
    suggest(f"Run 'apiharmony schemas {source}' to see where each schema is used")


def info_command(
    ctx: typer.Context,
    source: str = typer.Argument(help="URL or file path of an OpenAPI/Swagger document."),
) -> None:
    """Show API info (title, version, description, servers, etc.)."""
    from apiharmony.analysis import summarize

    summary = summarize(_load_source(ctx, source).document)

    data: dict = {
        "title": summary.info.title,
        "version": summary.info.version,
        "spec_version": summary.spec_version,
        "description": summary.info.description or "-",
        "servers": [s.url for s in summary.servers],
        "operations": len(summary.operations),
        "schemas": len(summary.schema_names),
        "security_schemes": list(summary.security_schemes),
    }
    if summary.info.contact_email:
        data["contact"] = summary.info.contact_email
    if summary.info.license_name:
        data["license"] = summary.info.license_name

    format_response(data)


def endpoints_command(
    ctx: typer.Context,
    source: str = typer.Argument(help="URL or file path of an OpenAPI/Swagger document."),
    tag: Optional[str] = typer.Option(None, "--tag", "-t", help="Only operations with this tag."),
) -> None:
    """List all endpoints in document order.

    Example::

        apiharmony endpoints petstore.yaml --tag pet
    """
    from apiharmony.analysis import summarize

    summary = summarize(_load_source(ctx, source).document)
    operations = [op for op in summary.operations if tag is None or tag in op.tags]

    rows = [
        [
            op.method.value.upper(),
            op.path,
            op.summary or "-",
            "Yes" if op.deprecated else "",
        ]
        for op in operations
    ]
    get_output().print_table(
        ["Method", "Path", "Summary", "Deprecated"],
        rows,
        title=f"{summary.info.title} -- Endpoints ({len(rows)})",
    )


def operation_command(
    ctx: typer.Context,
    source: str = typer.Argument(help="URL or file path of an OpenAPI/Swagger document."),
    method: str = typer.Argument(help="HTTP method, e.g. get."),
    path: str = typer.Argument(help="Path template, e.g. /pet/{petId}."),
) -> None:
    """Show the details of one operation."""
    from apiharmony.analysis import find_operation

    operation = find_operation(_load_source(ctx, source).document, path, method)
    if operation is None:
        error(f"No operation {method.upper()} {path}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    format_response(operation.model_dump(mode="json", by_alias=True, exclude_none=True))


def schemas_command(
    ctx: typer.Context,
    source: str = typer.Argument(help="URL or file path of an OpenAPI/Swagger document."),
    unused: bool = typer.Option(False, "--unused", help="Only schemas nothing uses."),
) -> None:
    """Show which operations and schemas use each schema.

    Example::

        apiharmony schemas petstore.yaml
        apiharmony --json schemas swagger.json --unused
    """
    from apiharmony.analysis import build_schema_usage

    usage = build_schema_usage(_load_source(ctx, source).document)
    records = [u for u in usage.values() if u.is_unused or not unused]
    if not records:
        info("No schemas to show.")
        return

    rows = [
        [
            record.name,
            ", ".join(
                f"{op.method.upper()} {op.path} ({op.role.value})" for op in record.operations
            ) or "-",
            ", ".join(record.referenced_by_schemas) or "-",
            "unused" if record.is_unused else "",
        ]
        for record in records
    ]
    get_output().print_table(
        ["Schema", "Operations", "Referenced by", "Status"],
        rows,
        title=f"Schemas ({len(rows)})",
    )


def show_command(
    ctx: typer.Context,
    source: str = typer.Argument(help="URL or file path of an OpenAPI/Swagger document."),
) -> None:
    """Print the bundled document as YAML."""
    snapshot = _load_source(ctx, source)
    get_output().print_yaml(snapshot.raw_text or "")
