"""Permissive JSON-Patch application onto simulation state documents."""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Mapping, Sequence

import jsonpatch
import jsonpointer

from core.level_scheduler import Genre
from core.proposals import PATCH_OPS, PatchOperation
from engines.flappy import flappy_from_document
from engines.master import master_from_document
from engines.maze import maze_from_document
from engines.runner import runner_from_document

LOGGER = logging.getLogger(__name__)

StateBuilder = Callable[[Mapping[str, Any]], Any]

STATE_BUILDERS: dict[Genre, StateBuilder] = {
    Genre.MAZE: maze_from_document,
    Genre.FLAPPY: flappy_from_document,
    Genre.RUNNER: runner_from_document,
    Genre.MASTER: master_from_document,
}

_PATCH_ERRORS = (
    jsonpatch.JsonPatchException,
    jsonpointer.JsonPointerException,
    KeyError,
    IndexError,
    TypeError,
    ValueError,
)


def _validate_operation(operation: PatchOperation) -> dict[str, Any]:
    if operation.op not in PATCH_OPS:
        raise ValueError(f"Unsupported patch op '{operation.op}'.")
    if not operation.path.startswith("/"):
        raise ValueError(f"Patch path must be a JSON pointer, got '{operation.path}'.")
    if operation.op in ("add", "replace") and not operation.has_value:
        raise ValueError(f"Patch op '{operation.op}' requires a value.")
    return operation.to_dict()


def apply_patch(
    document: Mapping[str, Any],
    patch: Sequence[PatchOperation],
    validate: StateBuilder | None = None,
) -> tuple[dict[str, Any], int]:
    """Apply ``patch`` to a copy of ``document`` one operation at a time.

    Operations that are malformed, that target missing locations, or whose
    result ``validate`` rejects are skipped; the rest still apply.

    Returns:
        tuple[dict[str, Any], int]: Patched document and applied operation count.
    """
    current: dict[str, Any] = copy.deepcopy(dict(document))
    applied = 0
    for operation in patch:
        try:
            raw = _validate_operation(operation)
            candidate = jsonpatch.JsonPatch([raw]).apply(current, in_place=False)
            if validate is not None:
                validate(candidate)
        except _PATCH_ERRORS as exc:
            LOGGER.debug("Skipping patch operation %s: %s", operation.to_dict(), exc)
            continue
        current = candidate
        applied += 1
    return current, applied


def apply_patch_to_state(genre: Genre, state: Any, patch: Sequence[PatchOperation]) -> tuple[Any, int]:
    """Patch a live engine state through its document form."""
    builder = STATE_BUILDERS[Genre(genre)]
    document, applied = apply_patch(state.to_document(), patch, validate=builder)
    return builder(document), applied
