"""apiharmony -- import, validate and analyse OpenAPI/Swagger specifications.

This package turns a specification fetched from a URL or read from a file
into a validated, self-contained document held by an active-specification
store, and derives the secondary views a dashboard needs from it: the schema
dependency graph, the endpoint list, operation details and the info block.

Typical usage::

    from apiharmony.store import SpecStore

    store = SpecStore()
    result = store.load_url("https://petstore3.swagger.io/api/v3/openapi.yaml")
    if result.success:
        snapshot = store.snapshot()
        print(snapshot.name, snapshot.document.info.get("title"))

Modules:
    app: Typer application and CLI entry point.
    store: The active-specification store (load / clear / snapshot).
    ingest: Fetch, format detection, version normalisation, bundling.
    analysis: Reference graph and endpoint/operation views.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration with precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
