from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Tab(str, Enum):
    LAW = "law"
    POLICY = "policy"


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Source(_Wire):
    uri: str
    title: str = ""

    @property
    def label(self) -> str:
        return self.title or self.uri


class Regulation(_Wire):
    regulation_name: str = Field("", alias="regulationName")
    competent_authority: str = Field("", alias="competentAuthority")
    last_amended_date: str = Field("", alias="lastAmendedDate")
    article: str = ""
    content: str = ""
    penalty: str = ""


class Policy(_Wire):
    policy_name: str = Field("", alias="policyName")
    issuing_agency: str = Field("", alias="issuingAgency")
    publication_date: str = Field("", alias="publicationDate")
    status: str = ""
    summary: str = ""
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")


RECORD_KEYS = {Tab.LAW: "regulations", Tab.POLICY: "policies"}
RECORD_MODELS = {Tab.LAW: Regulation, Tab.POLICY: Policy}


class SearchResponse(_Wire):
    records: Optional[list] = None
    raw_text: str = ""
    sources: List[Source] = Field(default_factory=list)

    @classmethod
    def from_wire(cls, tab: Tab, payload: Dict[str, Any]) -> "SearchResponse":
        model = RECORD_MODELS[tab]
        raw = payload.get(RECORD_KEYS[tab])
        records = None if raw is None else [model.model_validate(r) for r in raw]
        return cls(
            records=records,
            raw_text=payload.get("rawText") or "",
            sources=[Source.model_validate(s) for s in payload.get("sources") or []],
        )
