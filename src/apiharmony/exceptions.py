"""Exception hierarchy for apiharmony.

All exceptions inherit from :class:`HarmonyError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`apiharmony.exit_codes`.
The store catches ``HarmonyError`` at the top of every load and turns it into
a single user-facing message; the CLI entry point maps the same errors to
process exit codes.

Subclass hierarchy::

    HarmonyError (exit 1)
    +-- FetchError                (exit 3)
    +-- ParseError                (exit 4)
    +-- ValidationError           (exit 5)
    |   +-- UnsupportedVersionError
    +-- BundleError               (exit 6)
    +-- AnalysisError             (exit 7)
    +-- ConfigError               (exit 1)
"""

from __future__ import annotations

from typing import Optional

from apiharmony.exit_codes import (
    EXIT_ANALYSIS_ERROR,
    EXIT_BUNDLE_ERROR,
    EXIT_FETCH_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_PARSE_ERROR,
    EXIT_VALIDATION_ERROR,
)


class HarmonyError(Exception):
    """Base exception for all apiharmony errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class FetchError(HarmonyError):
    """Raised when a specification cannot be fetched or read.

    Covers network failures (``status_code`` is ``None``) as well as non-2xx
    responses, whose message is a best-effort summary of the response body.
    """

    exit_code = EXIT_FETCH_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(HarmonyError):
    """Raised when neither YAML nor JSON parsing yields an OpenAPI/Swagger object.

    Both underlying parser messages are kept so the caller can show the most
    relevant one.
    """

    exit_code = EXIT_PARSE_ERROR

    def __init__(
        self,
        message: str,
        yaml_error: Optional[str] = None,
        json_error: Optional[str] = None,
    ):
        super().__init__(message)
        self.yaml_error = yaml_error
        self.json_error = json_error


class ValidationError(HarmonyError):
    """Raised when the document violates the OpenAPI/Swagger meta-schema."""

    exit_code = EXIT_VALIDATION_ERROR

    def __init__(self, message: str, violations: Optional[list[str]] = None):
        super().__init__(message)
        self.violations = list(violations or [])


class UnsupportedVersionError(ValidationError):
    """Raised for a declared version the validator does not recognise.

    ``retryable`` is true only for ``3.0.x`` versions above the supported
    ceiling, which the bundler downgrades once before giving up.
    """

    def __init__(self, message: str, version: str, retryable: bool = False):
        super().__init__(message, violations=[message])
        self.version = version
        self.retryable = retryable


class BundleError(HarmonyError):
    """Raised when a ``$ref`` pointer cannot be resolved while bundling."""

    exit_code = EXIT_BUNDLE_ERROR


class AnalysisError(HarmonyError):
    """Raised when a language-model collaborator cannot be served or answers badly."""

    exit_code = EXIT_ANALYSIS_ERROR


class ConfigError(HarmonyError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
