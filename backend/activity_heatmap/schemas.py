"""Request and response bodies for the HTTP API."""
from typing import List, Optional

from pydantic import BaseModel, Field

from activity_heatmap.services.polyline import DEFAULT_PRECISION, MAX_PRECISION


class StravaTokenRequest(BaseModel):
    code: Optional[str] = None


class RWGPSTokenRequest(BaseModel):
    code: Optional[str] = None
    redirectUri: Optional[str] = None


class GeoPointSchema(BaseModel):
    latitude: float
    longitude: float
    elevation: Optional[float] = None


class EncodeRequest(BaseModel):
    points: List[GeoPointSchema]
    precision: int = Field(DEFAULT_PRECISION, ge=0, le=MAX_PRECISION)


class EncodeResponse(BaseModel):
    polyline: str
    elevations: Optional[List[Optional[float]]] = None


class DecodeRequest(BaseModel):
    polyline: str
    precision: int = Field(DEFAULT_PRECISION, ge=0, le=MAX_PRECISION)
    elevations: Optional[List[Optional[float]]] = None


class DecodeResponse(BaseModel):
    count: int
    points: List[GeoPointSchema]


class SegmentsRequest(BaseModel):
    polylines: List[str]


class SegmentSchema(BaseModel):
    start: List[float]
    end: List[float]
    count: int


class SegmentsResponse(BaseModel):
    count: int
    segments: List[SegmentSchema]
