"""Structured result schemas for the JSON-producing tasks."""

from __future__ import annotations

import math
from typing import Annotated, Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints


def _coerce_score(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("score must be a number")
    if not math.isfinite(value):
        raise ValueError("score must be finite")
    return int(round(value))


Score = Annotated[int, BeforeValidator(_coerce_score), Field(ge=0, le=100)]
NonEmptyStr = Annotated[str, StringConstraints(strict=True, strip_whitespace=True, min_length=1)]


class StructuredResult(BaseModel):
    """Base for schemas the repair engine validates against.

    ``repair_fields`` names long free-text fields (by their wire name) that
    providers tend to break with raw quotes, newlines or truncation.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    repair_fields: ClassVar[Tuple[str, ...]] = ()

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class KeywordItem(BaseModel):
    keyword: NonEmptyStr
    category: NonEmptyStr


class KeywordSet(StructuredResult):
    keywords: List[KeywordItem] = Field(min_length=1)


class OptimizationResult(StructuredResult):
    repair_fields: ClassVar[Tuple[str, ...]] = ("optimizedContent",)

    readability_score: Score = Field(alias="readabilityScore")
    seo_score: Score = Field(alias="seoScore")
    suggestions: List[NonEmptyStr]
    optimized_content: NonEmptyStr = Field(alias="optimizedContent")


class PlagiarismSource(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: NonEmptyStr
    title: NonEmptyStr
    matched_text: NonEmptyStr = Field(alias="matchedText")
    similarity_percentage: Score = Field(alias="similarityPercentage")


class DetectedQuote(BaseModel):
    text: NonEmptyStr
    source: Optional[str] = None


class ParaphrasedPassage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: NonEmptyStr
    similarity_score: Score = Field(alias="similarityScore")
    possible_source: Optional[str] = Field(default=None, alias="possibleSource")


class PlagiarismResult(StructuredResult):
    originality_score: Score = Field(alias="originalityScore")
    similarity_score: Score = Field(alias="similarityScore")
    sources: List[PlagiarismSource] = Field(default_factory=list)
    detected_quotes: List[DetectedQuote] = Field(
        default_factory=list,
        validation_alias=AliasChoices("detectedQuotes", "quotes", "detected_quotes"),
        serialization_alias="detectedQuotes",
    )
    paraphrased_content: List[ParaphrasedPassage] = Field(
        default_factory=list,
        validation_alias=AliasChoices("paraphrasedContent", "paraphrased", "paraphrased_content"),
        serialization_alias="paraphrasedContent",
    )
