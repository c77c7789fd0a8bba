from typing import Optional, Sequence

from models.character_model import (
    CharacterResult,
    RecommendedAnime,
    SuggestedCharacter,
    SuggestionsBundle,
    WatchNext,
)

SUGGESTIONS_PER_CHARACTER = 2


def distinct_titles(characters: Sequence[CharacterResult]) -> list[str]:
    titles: list[str] = []
    for character in characters:
        if character.anime not in titles:
            titles.append(character.anime)
    return titles


def synthesize(
    characters: Sequence[CharacterResult],
    genres_by_title: Optional[dict[str, list[str]]] = None,
) -> SuggestionsBundle:
    """Derive rule-based recommendations from the resolved characters."""
    genres_by_title = genres_by_title or {}
    titles = distinct_titles(characters)

    return SuggestionsBundle(
        recommended_anime=[
            RecommendedAnime(
                title=title,
                reason="Based on detected characters",
                genres=list(genres_by_title.get(title, [])),
            )
            for title in titles
        ],
        suggested_characters=[
            SuggestedCharacter(
                name=relation.name,
                anime=character.anime,
                reason=f"Similar to {character.name}",
            )
            for character in characters
            for relation in character.related_characters[:SUGGESTIONS_PER_CHARACTER]
        ],
        watch_next=[
            WatchNext(
                title=title,
                episode="Season 1, Episode 1",
                description="Continue your anime journey",
            )
            for title in titles
        ],
    )
