"""Cache commands -- inspect and empty the fetched-document cache.

Provides the ``apiharmony cache`` sub-command group. The cache holds the
bodies of specifications fetched by URL (see
:class:`~apiharmony.cache.DocumentCache`); it is configured through the
``cache`` section of :class:`~apiharmony.models.GlobalConfig`.
"""

from __future__ import annotations

import typer

from apiharmony.output import format_response, info, success, suggest


cache_app = typer.Typer(no_args_is_help=True)


def _open_cache(ctx: typer.Context, force: bool = False):
    from apiharmony.cache import DocumentCache
    from apiharmony.config import get_cache_dir
    from apiharmony.models import GlobalConfig

    config = (ctx.obj or {}).get("config") or GlobalConfig()
    cache_config = config.cache
    if force:
        cache_config = cache_config.model_copy(update={"enabled": True})
    return DocumentCache(get_cache_dir(), cache_config)


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show whether the cache is enabled and how many documents it holds.

    Example::

        apiharmony cache stats
        apiharmony --json cache stats
    """
    cache = _open_cache(ctx)
    try:
        stats = cache.stats()
    finally:
        cache.close()
    format_response(stats)
    if not stats["enabled"]:
        suggest("Enable it with: apiharmony config set cache.enabled true")


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Remove every cached document, even while caching is disabled.

    Example::

        apiharmony cache clear --yes
    """
    if not yes:
        confirmed = typer.confirm("Remove all cached documents?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    cache = _open_cache(ctx, force=True)
    try:
        cache.clear()
    finally:
        cache.close()
    success("Cache cleared.")


@cache_app.command("invalidate")
def cache_invalidate(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL whose cached document should be dropped."),
) -> None:
    """Drop the cached document for one URL so the next load refetches it.

    Example::

        apiharmony cache invalidate https://petstore3.swagger.io/api/v3/openapi.yaml
    """
    cache = _open_cache(ctx, force=True)
    try:
        cache.invalidate(url)
    finally:
        cache.close()
    success(f"Invalidated {url}")
