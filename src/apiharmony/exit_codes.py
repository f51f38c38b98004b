"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to one ingestion failure class and is referenced by the
corresponding :class:`~apiharmony.exceptions.HarmonyError` subclass, so
shell wrappers can tell a network failure from a broken document without
parsing stderr.

Example::

    $ apiharmony load https://example.com/missing.yaml
    $ echo $?
    3   # EXIT_FETCH_ERROR -- the server answered 404
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_FETCH_ERROR = 3
"""The specification could not be fetched or read."""

EXIT_PARSE_ERROR = 4
"""The content is neither a YAML nor a JSON OpenAPI/Swagger document."""

EXIT_VALIDATION_ERROR = 5
"""The document violates the OpenAPI/Swagger meta-schema."""

EXIT_BUNDLE_ERROR = 6
"""A ``$ref`` pointer could not be resolved while bundling."""

EXIT_ANALYSIS_ERROR = 7
"""A language-model collaborator returned unusable output."""
