"""Company and comparison-group schemas."""

from typing import List, Literal, Optional

from pydantic import BaseModel

from peercompare.schemas.metric import RawFinancialData


class Company(BaseModel):
    """A tracked ticker and the last record fetched for it."""

    id: str
    ticker: str
    raw_data: Optional[RawFinancialData] = None
    is_loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[int] = None  # epoch millis
    api_providers: List[str] = []


class ComparisonGroup(BaseModel):
    """User-defined basket of companies compared as one synthetic item."""

    id: str
    name: str
    company_ids: List[str] = []
    is_group: Literal[True] = True
