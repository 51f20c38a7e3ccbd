from pydantic import BaseModel, Field


class CoinSnapshot(BaseModel):
    id: str
    symbol: str
    display_name: str
    price: float = Field(ge=0)
    change_24h_pct: float
    market_cap: float = Field(ge=0)
    image_url: str


class SearchCandidate(BaseModel):
    id: str
    name: str
    symbol: str
    thumb: str


class CoinDetails(BaseModel):
    id: str
    symbol: str
    name: str
    image_url: str
    price: float | None = None
    change_24h_pct: float | None = None
    market_cap: float | None = None


class TrackCoinRequest(BaseModel):
    id: str


class SearchResult(BaseModel):
    query: str
    candidates: list[SearchCandidate]
    error: str | None = None
