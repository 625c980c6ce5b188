"""
famsim/context.py
~~~~~~~~~~~~~~~~~
Bundles the read-only collaborators every engine function needs: the content
catalog, the engine settings, the name loader and the random source.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from famsim.catalog import ContentCatalog
from famsim.config_loader import ConfigLoader, EngineSettings
from famsim.name_loader import NameLoader
from famsim.paths import CONFIG_DIR, NAME_LISTS_DIR
from famsim.rng import RandomSource


@dataclass
class EngineContext:
    catalog: ContentCatalog
    settings: EngineSettings
    rng: RandomSource = field(default_factory=RandomSource)
    names: NameLoader = field(default_factory=NameLoader)

    @classmethod
    def from_config(
        cls,
        config_folder: str | Path = CONFIG_DIR,
        seed: int | str | None = None,
        strict: bool | None = None,
        name_list_folder: str | Path = NAME_LISTS_DIR,
    ) -> EngineContext:
        loader = ConfigLoader(config_folder, strict=strict)
        return cls(
            catalog=loader.get_catalog(),
            settings=loader.get_settings(),
            rng=RandomSource(seed),
            names=NameLoader(name_list_folder),
        )

    def day_index(self, day: int, year: int) -> int:
        """Absolute day count, used for cooldowns that straddle years."""
        return year * self.settings.daysInYear + day
