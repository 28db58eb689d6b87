"""
Curated title allow-list.

Curated titles get a synthetic price when the pricing provider has
none, and are never re-priced from the provider afterwards. One
`CuratedCatalog` instance is shared by every component that needs it.
"""

import json
from collections.abc import Iterable
from pathlib import Path

from catalog_sync.catalog.titles import normalized_key
from catalog_sync.logger import get_logger

logger = get_logger(__name__, component="curated_catalog")

DEFAULT_CURATED_TITLES: tuple[str, ...] = (
    "The Legend of Zelda: Breath of the Wild",
    "Red Dead Redemption 2",
    "Elden Ring",
    "Baldur's Gate 3",
    "The Legend of Zelda: Tears of the Kingdom",
    "Hades II",
    "God of War (2018)",
    "Persona 5 Royal",
    "The Witcher 3: Wild Hunt",
    "Disco Elysium: The Final Cut",
    "Astro Bot",
    "Final Fantasy VII Rebirth",
    "Super Mario Odyssey",
    "The Last of Us Part II",
    "Bloodborne",
    "God of War Ragnarök",
    "Resident Evil 4",
    "Sekiro: Shadows Die Twice",
    "Hades",
    "Hollow Knight",
    "Metal Gear Solid V: The Phantom Pain",
    "Uncharted 4: A Thief's End",
    "Forza Horizon 5",
    "Metroid Dread",
    "It Takes Two",
    "Alan Wake 2",
    "Street Fighter 6",
    "Celeste",
    "Undertale",
    "Inside",
    "Persona 5",
    "Demon's Souls",
    "Ratchet & Clank: Rift Apart",
    "Marvel's Spider-Man 2",
    "Ghost of Tsushima",
    "Cyberpunk 2077",
    "Outer Wilds",
    "Doom Eternal",
    "Cuphead",
    "Stardew Valley",
    "Ori and the Will of the Wisps",
    "Xenoblade Chronicles 3",
    "Dragon Quest XI S",
    "Monster Hunter: World",
    "Resident Evil 2",
    "Divinity: Original Sin II",
    "Half-Life: Alyx",
    "Animal Crossing: New Horizons",
    "Horizon Zero Dawn",
    "Control",
    "Clair Obscur: Expedition 33",
    "Blue Prince",
    "Split Fiction",
    "Death Stranding 2: On the Beach",
    "Donkey Kong Bananza",
    "Metroid Prime 4: Beyond",
    "Slay the Spire",
    "Balatro",
    "Dave the Diver",
    "Sea of Stars",
    "Chained Echoes",
    "Tunic",
    "Inscryption",
    "Neon White",
    "Vampire Survivors",
    "Hi-Fi RUSH",
    "Armored Core VI: Fires of Rubicon",
    "Returnal",
    "Psychonauts 2",
    "NieR: Automata",
    "Yakuza: Like a Dragon",
    "Like a Dragon: Infinite Wealth",
    "Final Fantasy XVI",
    "Monster Hunter Wilds",
    "Kingdom Come: Deliverance II",
    "Hollow Knight: Silksong",
    "Dead Space",
    "Star Wars Jedi: Survivor",
    "Microsoft Flight Simulator",
    "Titanfall 2",
    "Overwatch",
    "XCOM 2",
    "Civilization VI",
    "Fire Emblem: Three Houses",
    "Astral Chain",
    "Bayonetta 3",
    "Super Smash Bros. Ultimate",
    "Mario Kart 8 Deluxe",
    "Tekken 8",
    "Mortal Kombat 1",
    "Guilty Gear -Strive-",
    "Dragon Ball FighterZ",
    "Gran Turismo 7",
    "Forza Motorsport",
    "F1 24",
    "Dirt Rally 2.0",
    "Katana ZERO",
    "Hotline Miami 2: Wrong Number",
    "Shovel Knight: Treasure Trove",
    "Dead Cells",
)


class CuratedCatalog:
    """
    Membership test for curated titles.

    Matching uses `normalized_key`, so "God of War (2018)" and
    "god of war" are the same title.
    """

    def __init__(self, titles: Iterable[str] = DEFAULT_CURATED_TITLES) -> None:
        self._keys = frozenset(normalized_key(t) for t in titles if t.strip())

    @classmethod
    def from_file(cls, path: Path) -> "CuratedCatalog":
        """
        Load the allow-list from a JSON array of titles.

        Raises:
            ValueError: If the file is not a JSON array of strings
        """
        with path.open(encoding="utf-8") as f:
            titles = json.load(f)

        if not isinstance(titles, list) or not all(isinstance(t, str) for t in titles):
            raise ValueError(f"Curated list must be a JSON array of strings: {path}")

        logger.info("Loaded curated titles", path=str(path), count=len(titles))
        return cls(titles)

    @classmethod
    def from_path_or_default(cls, path: Path | None) -> "CuratedCatalog":
        """Load from `path` when given, otherwise use the built-in list."""
        if path is None:
            return cls()
        return cls.from_file(path)

    def is_curated(self, title: str) -> bool:
        """Check whether a title is on the allow-list."""
        return normalized_key(title) in self._keys

    def __contains__(self, title: object) -> bool:
        return isinstance(title, str) and self.is_curated(title)

    def __len__(self) -> int:
        return len(self._keys)
