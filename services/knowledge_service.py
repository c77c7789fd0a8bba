import json
import logging
from typing import Iterable, Optional

from models.character_model import CharacterRecord


class KnowledgeBase:
    """Read-only lookup of character reference data by exact name."""

    def __init__(self, records: Iterable[CharacterRecord]):
        self._records: dict[str, CharacterRecord] = {}
        for record in records:
            if record.name in self._records:
                raise ValueError(f"Duplicate character in knowledge base: {record.name}")
            self._records[record.name] = record

    @classmethod
    def from_file(cls, path: str) -> "KnowledgeBase":
        """Load the knowledge base from a JSON list of character records."""
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, list):
            raise ValueError(f"Knowledge base {path} must contain a JSON list")
        knowledge_base = cls(CharacterRecord(**item) for item in raw)
        logging.info("Loaded %d characters from %s", len(knowledge_base), path)
        return knowledge_base

    def resolve(self, name: str) -> Optional[CharacterRecord]:
        return self._records.get(name)

    def names(self) -> list[str]:
        return list(self._records)

    def records(self) -> list[CharacterRecord]:
        return list(self._records.values())

    def genres_by_title(self) -> dict[str, list[str]]:
        genres: dict[str, list[str]] = {}
        for record in self._records.values():
            title_genres = genres.setdefault(record.anime, [])
            for genre in record.genres:
                if genre not in title_genres:
                    title_genres.append(genre)
        return genres

    def __len__(self) -> int:
        return len(self._records)
