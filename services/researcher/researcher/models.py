from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WireModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class GroundingSource(WireModel):
    uri: str
    title: str = ""


class Regulation(WireModel):
    regulation_name: str = Field("", alias="regulationName")
    competent_authority: str = Field("", alias="competentAuthority")
    last_amended_date: str = Field("", alias="lastAmendedDate")
    article: str = ""
    content: str = ""
    penalty: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def none_to_blank(cls, v):
        return "" if v is None else v


class Policy(WireModel):
    policy_name: str = Field("", alias="policyName")
    issuing_agency: str = Field("", alias="issuingAgency")
    publication_date: str = Field("", alias="publicationDate")
    status: str = ""
    summary: str = ""
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")

    @field_validator("policy_name", "issuing_agency", "publication_date", "status", "summary", mode="before")
    @classmethod
    def none_to_blank(cls, v):
        return "" if v is None else v

    @field_validator("key_points", mode="before")
    @classmethod
    def listify_key_points(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return v


def _blank_to_none(v):
    if v is None:
        return None
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class RegulationFilters(WireModel):
    competent_authority: Optional[str] = Field(None, alias="competentAuthority")
    date_from: Optional[date] = Field(None, alias="dateFrom")
    date_to: Optional[date] = Field(None, alias="dateTo")

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class PolicyFilters(WireModel):
    date_from: Optional[date] = Field(None, alias="dateFrom")
    date_to: Optional[date] = Field(None, alias="dateTo")
    include_keywords: Optional[str] = Field(None, alias="includeKeywords")
    exclude_keywords: Optional[str] = Field(None, alias="excludeKeywords")

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class SearchRequest(WireModel):
    query: str
    country: str
    language: str

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("query must not be blank")
        return v.strip()


class RegulationSearchIn(SearchRequest):
    filters: RegulationFilters = Field(default_factory=RegulationFilters)


class PolicySearchIn(SearchRequest):
    filters: PolicyFilters = Field(default_factory=PolicyFilters)


class RegulationSearchResult(WireModel):
    regulations: Optional[List[Regulation]] = None
    raw_text: str = Field("", alias="rawText")
    sources: List[GroundingSource] = Field(default_factory=list)


class PolicySearchResult(WireModel):
    policies: Optional[List[Policy]] = None
    raw_text: str = Field("", alias="rawText")
    sources: List[GroundingSource] = Field(default_factory=list)


class TranslateIn(WireModel):
    texts: List[str] = Field(default_factory=list)
    target_language: str = Field(alias="targetLanguage")


class TranslateOut(WireModel):
    translations: List[str]
