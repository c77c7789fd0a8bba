import base64
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

DATA_URI_PATTERN = re.compile(r"^data:(image/(?:png|jpeg|webp|jpg));base64,")
DATA_URI_HEADER = re.compile(r"^data:(.*);base64,")


class StreamingPlatform(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: str


class CharacterRecord(BaseModel):
    """Reference data for a single character, keyed by its exact name."""

    model_config = ConfigDict(frozen=True)

    name: str
    anime: str
    description: str
    related_characters: tuple[str, ...] = ()
    streaming_platforms: tuple[StreamingPlatform, ...] = ()
    appearances: tuple[str, ...] = ()
    genres: tuple[str, ...] = ()

    @property
    def embedding_text(self) -> str:
        return f"{self.name} {self.description}"


class RankedRelation(BaseModel):
    name: str
    similarity: float
    image: Optional[str] = None


class CharacterResult(BaseModel):
    name: str
    anime: str
    description: str
    related_characters: list[RankedRelation] = Field(default_factory=list)
    streaming_platforms: list[StreamingPlatform] = Field(default_factory=list)
    appearances: list[str] = Field(default_factory=list)
    image: Optional[str] = None

    @classmethod
    def from_record(
        cls, record: CharacterRecord, relations: list[RankedRelation]
    ) -> "CharacterResult":
        return cls(
            name=record.name,
            anime=record.anime,
            description=record.description,
            related_characters=relations,
            streaming_platforms=list(record.streaming_platforms),
            appearances=list(record.appearances),
        )

    @property
    def embedding_text(self) -> str:
        return f"{self.name} {self.description}"


class RecommendedAnime(BaseModel):
    title: str
    reason: str
    genres: list[str] = Field(default_factory=list)


class SuggestedCharacter(BaseModel):
    name: str
    anime: str
    reason: str


class WatchNext(BaseModel):
    title: str
    episode: str
    description: str


class SuggestionsBundle(BaseModel):
    recommended_anime: list[RecommendedAnime] = Field(default_factory=list)
    suggested_characters: list[SuggestedCharacter] = Field(default_factory=list)
    watch_next: list[WatchNext] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    characters: list[CharacterResult] = Field(default_factory=list)
    suggestions: SuggestionsBundle = Field(default_factory=SuggestionsBundle)


class AnalysisPhase(str, Enum):
    IDLE = "idle"
    RECOGNIZING = "recognizing"
    RESOLVING = "resolving"
    RANKING = "ranking"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


class ProgressEvent(BaseModel):
    phase: AnalysisPhase
    detail: str = ""


class ImageInput(BaseModel):
    """An image to recognize, either as raw bytes or as a remote URL."""

    data: Optional[bytes] = None
    mime_type: str = "image/jpeg"
    url: Optional[str] = None

    @model_validator(mode="after")
    def _check_source(self):
        if self.data is None and not self.url:
            raise ValueError("ImageInput needs either data or url")
        return self

    @classmethod
    def from_data_uri(cls, uri: str) -> "ImageInput":
        """Build an input from a ``data:image/...;base64,`` URI.

        The mime type falls back to ``image/jpeg`` when the header is missing
        or names an unsupported type.
        """
        match = DATA_URI_PATTERN.match(uri)
        mime_type = match.group(1) if match else "image/jpeg"
        payload = DATA_URI_HEADER.sub("", uri, count=1)
        return cls(data=base64.b64decode(payload, validate=True), mime_type=mime_type)

    def base64_data(self) -> str:
        if self.data is None:
            raise ValueError("ImageInput has no inline data")
        return base64.b64encode(self.data).decode("utf-8")


class AnalyzeImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(alias="imageBase64", min_length=1)


class CharacterComparison(BaseModel):
    left_image: int
    left: str
    right_image: int
    right: str
    similarity: float


class ComparisonResult(BaseModel):
    analyses: list[AnalysisResult] = Field(default_factory=list)
    comparisons: list[CharacterComparison] = Field(default_factory=list)
