"""Polyline codec and heatmap segment endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from activity_heatmap.database import get_db
from activity_heatmap.schemas import (
    DecodeRequest,
    DecodeResponse,
    EncodeRequest,
    EncodeResponse,
    SegmentsRequest,
    SegmentsResponse,
)
from activity_heatmap.services import polyline as codec
from activity_heatmap.services.segments import process_gpx_files, process_polylines
from activity_heatmap.services.track_store import TrackStore

router = APIRouter(prefix="/api", tags=["polylines"])


@router.post("/polyline/encode", response_model=EncodeResponse)
async def encode_polyline(body: EncodeRequest):
    """
    Encode points as a Google polyline.

    Elevations are returned beside the polyline when any point has one.
    """
    points = [codec.GeoPoint(p.latitude, p.longitude, p.elevation) for p in body.points]

    try:
        encoded = codec.encode(points, body.precision)
    except codec.InvalidCoordinate as e:
        raise HTTPException(
            status_code=422,
            detail={"error": "InvalidCoordinate", "index": e.index, "message": str(e)},
        )

    return {
        "polyline": encoded,
        "elevations": codec.split_elevations(points) if codec.has_elevation(points) else None,
    }


@router.post("/polyline/decode", response_model=DecodeResponse)
async def decode_polyline(body: DecodeRequest):
    """Decode a Google polyline into points."""
    try:
        points = codec.decode(body.polyline, body.precision, body.elevations)
    except codec.MalformedPolyline as e:
        raise HTTPException(
            status_code=422,
            detail={"error": "MalformedPolyline", "offset": e.offset, "message": str(e)},
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "count": len(points),
        "points": [
            {"latitude": p.latitude, "longitude": p.longitude, "elevation": p.elevation}
            for p in points
        ],
    }


def _segments_response(segments) -> dict:
    return {
        "count": len(segments),
        "segments": [segment.to_dict() for segment in segments],
    }


@router.post("/heatmap/segments", response_model=SegmentsResponse)
async def segments_from_polylines(body: SegmentsRequest):
    """Aggregate encoded polylines or JSON coordinate arrays into heatmap segments."""
    return _segments_response(process_polylines(body.polylines))


@router.get("/heatmap/segments", response_model=SegmentsResponse)
async def segments_from_stored_tracks(
    source: Optional[str] = Query(None, description="Filter by source (strava, ridewithgps)"),
    activity_type: Optional[str] = Query(None, description="Filter by activity type"),
    db: Session = Depends(get_db),
):
    """Aggregate stored tracks into heatmap segments."""
    return _segments_response(process_polylines(TrackStore.polylines(db, source, activity_type)))


@router.post("/heatmap/gpx", response_model=SegmentsResponse)
async def segments_from_gpx(files: List[UploadFile] = File(..., description="GPX files")):
    """Aggregate uploaded GPX files into heatmap segments."""
    contents = [await upload.read() for upload in files]
    return _segments_response(process_gpx_files(contents))
