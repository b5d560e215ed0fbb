"""Level proposals and the generative-model client that produces them."""

from __future__ import annotations

import json
import logging
import math
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from google import genai
from google.genai import types

from core.level_scheduler import Genre

LOGGER = logging.getLogger(__name__)

PATCH_OPS: tuple[str, ...] = ("add", "replace", "remove")
DEFAULT_MODEL = "gemini-3-pro-preview"
SNAPSHOT_CHAR_LIMIT = 2000
FAILURE_TITLE = "Error Generating Level"
REJECT_INSTRUCTION = "Try something different. That was rejected."
MASTER_INSTRUCTION = "Create the ULTIMATE FINAL BOSS LEVEL mixing all 3 mechanics."

SYSTEM_PROMPT = """
You are the Level Designer for a reinforcement-learning arcade.
Your job is to create the NEXT LEVEL for a game.
Input: Current Game State + Current Level Number.
Output: A JSON Patch to make the game HARDER or DIFFERENT.
Title: Give the level a cool name.
Description: Explain what changed (e.g. "Added hazards", "Increased gravity").
Constraints:
- Use standard JSON Patch (add, replace, remove).
- Do NOT make it impossible.
- Maze: Change grid tiles (empty, wall, hazard, goal), add hazards.
- Flappy: Change config gravity, jumpStrength, speed, spawnRate.
- Runner: Change config speed, spawnRate, or lanes.
"""


@dataclass(frozen=True)
class PatchOperation:
    op: str
    path: str
    value: Any = None
    has_value: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"op": self.op, "path": self.path}
        if self.has_value:
            payload["value"] = self.value
        return payload

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PatchOperation":
        return cls(
            op=str(raw.get("op", "")),
            path=str(raw.get("path", "")),
            value=raw.get("value"),
            has_value="value" in raw,
        )


@dataclass(frozen=True)
class Proposal:
    title: str
    description: str
    patch: tuple[PatchOperation, ...] = field(default_factory=tuple)

    @property
    def is_failure(self) -> bool:
        return self.title == FAILURE_TITLE and not self.patch

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "patch": [operation.to_dict() for operation in self.patch],
        }


def failure_proposal(detail: str = "The level designer failed to respond. Try again.") -> Proposal:
    """Well-formed stand-in for a proposal request that went wrong."""
    return Proposal(title=FAILURE_TITLE, description=detail, patch=())


def coerce_value(value: Any) -> Any:
    """Turn boolean and numeric-looking strings into ``bool``/``int``/``float``.

    Anything else, including empty and non-finite text, is returned unchanged.
    """
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return value
    lowered = text.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return value
    return number if math.isfinite(number) else value


def coerce_patch_values(patch: Sequence[PatchOperation]) -> tuple[PatchOperation, ...]:
    return tuple(
        PatchOperation(op.op, op.path, coerce_value(op.value), op.has_value) for op in patch
    )


def proposal_from_payload(payload: Any) -> Proposal:
    """Build a proposal from decoded model output, coercing patch values."""
    if not isinstance(payload, Mapping):
        raise ValueError("Proposal payload must be a JSON object.")
    raw_patch = payload.get("patch", [])
    if not isinstance(raw_patch, list):
        raise ValueError("Proposal 'patch' must be a list.")
    patch = [PatchOperation.from_dict(item) for item in raw_patch if isinstance(item, Mapping)]
    return Proposal(
        title=str(payload.get("title", "Untitled Level")),
        description=str(payload.get("description", "")),
        patch=coerce_patch_values(patch),
    )


def default_instruction(genre: Genre, level: int) -> str:
    if Genre(genre) is Genre.MASTER:
        return MASTER_INSTRUCTION
    return f"Create Level {level + 1}. Increase difficulty significantly."


def build_prompt(genre: Genre, level: int, snapshot: str, instruction: str | None = None) -> str:
    return (
        f"GENRE: {Genre(genre).value}\n"
        f"CURRENT LEVEL: {level}\n"
        f"NEXT LEVEL: {level + 1}\n\n"
        f"CURRENT STATE: {snapshot[:SNAPSHOT_CHAR_LIMIT]}\n\n"
        f"INSTRUCTION: {instruction or default_instruction(genre, level)}\n\n"
        "Return JSON with { title, description, patch }."
    )


class ProposalClient(ABC):
    """Contract for the collaborator that designs the next level."""

    @abstractmethod
    def request(
        self,
        genre: Genre,
        level: int,
        snapshot: str,
        instruction: str | None = None,
    ) -> Proposal:
        """Return a proposal for the level after ``level``.

        Invariants:
            - Never raises; failures come back as ``failure_proposal``.
        """


class GeminiProposalClient(ProposalClient):
    """Proposal client backed by Gemini structured JSON output."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = self.api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
            self._client = genai.Client(api_key=api_key)
        return self._client

    def request(
        self,
        genre: Genre,
        level: int,
        snapshot: str,
        instruction: str | None = None,
    ) -> Proposal:
        prompt = build_prompt(genre, level, snapshot, instruction)
        try:
            response = self._get_client().models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=SYSTEM_PROMPT,
                    response_mime_type="application/json",
                    response_schema=_response_schema(),
                ),
            )
            text = getattr(response, "text", None)
            if not text:
                raise ValueError("No response text from model.")
            proposal = proposal_from_payload(json.loads(text))
        except Exception as exc:
            LOGGER.exception("Proposal request for %s level %s failed", Genre(genre).value, level)
            return failure_proposal(f"Gemini failed to respond ({exc}). Try again.")
        LOGGER.info("Received proposal '%s' with %d operation(s)", proposal.title, len(proposal.patch))
        return proposal


def _response_schema() -> types.Schema:
    operation = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "op": types.Schema(type=types.Type.STRING, enum=list(PATCH_OPS)),
            "path": types.Schema(type=types.Type.STRING),
            "value": types.Schema(type=types.Type.STRING),
        },
        required=["op", "path"],
    )
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "title": types.Schema(type=types.Type.STRING),
            "description": types.Schema(type=types.Type.STRING),
            "patch": types.Schema(type=types.Type.ARRAY, items=operation),
        },
        required=["title", "description", "patch"],
    )
