from typing import List, Optional

from pydantic import Field, model_validator

from extractor.models.job import CamelModel, ExtractionType
from extractor.urls import split_url_list


class ExtractionRequest(CamelModel):
    url: Optional[str] = Field(None, description="A single target website")
    urls: Optional[List[str]] = Field(None, description="A list of target websites")
    urls_text: Optional[str] = Field(None, description="Newline-separated target websites")
    extraction_type: Optional[ExtractionType] = Field(None, description="single or multiple; derived when omitted")

    @model_validator(mode="after")
    def require_some_url(self):
        if not (self.url or self.urls or (self.urls_text or "").strip()):
            raise ValueError("Provide url, urls or urls_text")
        if self.extraction_type == ExtractionType.CSV:
            raise ValueError("CSV extractions are submitted as a file upload")
        return self

    def raw_urls(self) -> List[str]:
        raw = []
        if self.url:
            raw.append(self.url)
        raw.extend(self.urls or [])
        raw.extend(split_url_list(self.urls_text or ""))
        return raw

    def source(self) -> ExtractionType:
        if self.extraction_type is not None:
            return self.extraction_type
        return ExtractionType.SINGLE if len(self.raw_urls()) == 1 else ExtractionType.MULTIPLE


class CsvPreview(CamelModel):
    urls: List[str]
    count: int


class JobPage(CamelModel):
    jobs: List[dict]
    limit: int
    offset: int
    count: int
