"""Seam for language-model collaborators.

Analysis features (documentation generation, compliance checks and the
like) live outside this package. They all follow the same shape: serialise
the active specification into a prompt, hand it to a completion function,
and validate the structured answer. :func:`request_analysis` implements that
shape once so a collaborator only supplies its instructions and the
pydantic model of the answer it expects.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from apiharmony.exceptions import AnalysisError
from apiharmony.models import ActiveSpecification
from apiharmony.output import debug

T = TypeVar("T", bound=BaseModel)

CompletionFn = Callable[[str], Any]
"""Takes prompt text, returns a dict or a JSON string."""


def build_prompt(snapshot: ActiveSpecification, instructions: str) -> str:
    """Combine *instructions* with the YAML text of the active specification.

    Raises:
        AnalysisError: If no specification is loaded.
    """
    if snapshot.document is None or not snapshot.raw_text:
        raise AnalysisError("No specification is loaded")
    return f"{instructions.strip()}\n\nSpecification ({snapshot.name}):\n```yaml\n{snapshot.raw_text}```\n"


def request_analysis(
    snapshot: ActiveSpecification,
    instructions: str,
    output_model: type[T],
    complete: CompletionFn,
) -> T:
    """Ask a completion function about the active specification.

    Args:
        snapshot: From :meth:`~apiharmony.store.SpecStore.snapshot`.
        instructions: What the collaborator wants done.
        output_model: Pydantic model the answer must satisfy.
        complete: Opaque completion function.

    Returns:
        The validated answer.

    Raises:
        AnalysisError: If nothing is loaded, the completion function fails,
            or its answer does not match *output_model*.
    """
    prompt = build_prompt(snapshot, instructions)
    debug(f"Requesting analysis ({len(prompt)} prompt chars) as {output_model.__name__}")
    try:
        answer = complete(prompt)
    except Exception as exc:
        raise AnalysisError(f"Completion failed: {exc}") from exc

    try:
        if isinstance(answer, (str, bytes)):
            return output_model.model_validate_json(answer)
        return output_model.model_validate(answer)
    except PydanticValidationError as exc:
        raise AnalysisError(
            f"Completion did not match {output_model.__name__}: {exc}"
        ) from exc
