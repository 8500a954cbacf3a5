"""
Model label to model file mapping for the generator.

This module defines the ordered table that turns the model chosen in the panel
into the ``--model`` file name passed to the generator.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from .constants import (
    ANIME_FACES1_MODEL,
    ANIME_FACES2_MODEL,
    ANIME_PORTRAITS_MODEL,
    CELEBAHQ_MODEL,
    DEFAULT_MODEL_FILE,
    FFHQ_MODEL,
)


class ModelId(str, Enum):
    """Models selectable in the panel; values are the display labels."""

    FFHQ = "FFHQ Faces"
    CELEBA_HQ = "CelebA HQ Faces"
    ANIME1 = "Anime Faces1"
    ANIME2 = "Anime Faces2"
    ANIME_PORTRAITS = "Anime Portraits"

    @classmethod
    def from_name(cls, name: str) -> ModelId:
        """Look up a model by member name or display label, case-insensitively."""
        n = name.strip().lower()
        for member in cls:
            if n in (member.name.lower(), member.value.lower()):
                return member
        raise ValueError(f"Unknown model: {name}")


class ModelMapping(NamedTuple):
    """Maps a panel label to a generator model file."""

    label: str
    filename: str


# Order matters: every row is checked and the last matching row wins.
# The second "FFHQ Faces" row points at the CelebA-HQ file and shadows the first.
MODEL_MAPPINGS = [
    ModelMapping(ModelId.FFHQ.value, FFHQ_MODEL),
    ModelMapping(ModelId.CELEBA_HQ.value, CELEBAHQ_MODEL),
    ModelMapping(ModelId.FFHQ.value, CELEBAHQ_MODEL),
    ModelMapping(ModelId.ANIME1.value, ANIME_FACES1_MODEL),
    ModelMapping(ModelId.ANIME2.value, ANIME_FACES2_MODEL),
    ModelMapping(ModelId.ANIME_PORTRAITS.value, ANIME_PORTRAITS_MODEL),
]


class ModelMapper:
    """Resolves panel labels to model files."""

    @staticmethod
    def resolve(model: ModelId | str, mappings: list[ModelMapping] | None = None) -> str:
        """
        Return the model file for a model id or label.

        Args:
            model: ModelId member or raw panel label
            mappings: Optional table overriding MODEL_MAPPINGS

        Returns:
            Model file name; DEFAULT_MODEL_FILE when no row matches
        """
        label = model.value if isinstance(model, ModelId) else str(model)

        filename = DEFAULT_MODEL_FILE
        for mapping in mappings if mappings is not None else MODEL_MAPPINGS:
            if mapping.label == label:
                filename = mapping.filename
        return filename

    @staticmethod
    def shadowed_rows(mappings: list[ModelMapping] | None = None) -> list[ModelMapping]:
        """Return rows that can never win because a later row has the same label."""
        rows = mappings if mappings is not None else MODEL_MAPPINGS
        shadowed = []
        for i, mapping in enumerate(rows):
            if any(later.label == mapping.label for later in rows[i + 1:]):
                shadowed.append(mapping)
        return shadowed
