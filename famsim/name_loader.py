"""
famsim/name_loader.py
~~~~~~~~~~~~~~~~~~~~~
Loads language-specific given-name lists from text files and picks names
through the engine's random source.

Name files live in ``name_lists/`` and follow the convention
``<language>_<gender>.txt`` with gender lowercase (e.g. ``vi_female.txt``).
An unknown language falls back to English before falling back to built-in
placeholder names.
"""

from __future__ import annotations

import logging
from pathlib import Path

from famsim.models import Gender
from famsim.paths import NAME_LISTS_DIR
from famsim.rng import RandomSource

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"
FALLBACK_NAMES = {
    "male": ["Alex", "Sam"],
    "female": ["Alex", "Sam"],
}


class NameLoader:
    """Loads and caches language/gender name lists from disk."""

    def __init__(self, name_list_folder: str | Path = NAME_LISTS_DIR) -> None:
        self._folder = Path(name_list_folder)
        self._cache: dict[tuple[str, str], list[str]] = {}

        if not self._folder.is_dir():
            logger.warning("Name lists folder '%s' not found. Using fallback names.", self._folder)

    def _load(self, language: str, gender: str) -> list[str]:
        key = (language, gender)
        if key in self._cache:
            return self._cache[key]

        file_path = self._folder / f"{language}_{gender}.txt"
        try:
            names = [line.strip() for line in file_path.read_text(encoding="utf-8").splitlines() if line.strip()]
        except FileNotFoundError:
            names = []

        if not names:
            if language != DEFAULT_LANGUAGE:
                logger.warning("No %s names for language '%s'; using '%s'.", gender, language, DEFAULT_LANGUAGE)
                names = self._load(DEFAULT_LANGUAGE, gender)
            else:
                logger.warning("Name file missing or empty: %s. Using fallback names.", file_path)
                names = FALLBACK_NAMES[gender]

        self._cache[key] = names
        return names

    # ------------------------------------------------------------------
    #  Public API
    # ------------------------------------------------------------------

    def random_name(self, language: str, gender: Gender, rng: RandomSource) -> str:
        return rng.choice(self._load(language, gender.value.lower()))

    def get_all_names(self, language: str, gender: Gender) -> list[str]:
        return list(self._load(language, gender.value.lower()))
