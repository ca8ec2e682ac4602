from typing import Any, Dict, List, Literal, Optional

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


GigStatus = Literal["scheduled", "cancelled", "postponed"]


class GigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Venue(GigModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @field_validator('lat')
    def latitude_must_be_valid(cls, v):
        if v is not None and not (-90 <= v <= 90):
            raise ValueError('Latitude must be between -90 and 90')
        return v

    @field_validator('lng')
    def longitude_must_be_valid(cls, v):
        if v is not None and not (-180 <= v <= 180):
            raise ValueError('Longitude must be between -180 and 180')
        return v


class Gig(GigModel):
    id: str
    source: str
    source_id: str
    title: Optional[str] = None
    artists: List[str] = Field(default_factory=list)
    venue: Venue = Field(default_factory=Venue)
    date_start: str
    date_end: Optional[str] = None
    timezone: Optional[str] = None
    event_url: Optional[str] = None
    tickets_url: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    genre: List[str] = Field(default_factory=list)
    age_restriction: Optional[str] = None
    description: Optional[str] = None
    status: GigStatus = "scheduled"
    hash: str
    updated_at: str

    @field_validator('date_start', 'date_end')
    def must_be_iso_8601(cls, v):
        if v is not None:
            isoparse(v)
        return v

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
