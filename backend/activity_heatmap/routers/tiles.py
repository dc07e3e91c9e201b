"""
Tile rendering endpoints for heatmap visualization.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from activity_heatmap.database import get_db
from activity_heatmap.services.segments import process_polylines
from activity_heatmap.services.tile_renderer import (
    GRADIENTS,
    ORANGE,
    LinearGradient,
    TileCoordinate,
    TileRasterizer,
    empty_tile_png,
)
from activity_heatmap.services.track_store import TrackStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tiles"])

CACHE_HEADERS = {"Cache-Control": "public, max-age=3600"}

# Tracks just outside the tile can still have segments crossing into it
TILE_EXPANSION = 0.1


@router.get("/tiles/{z}/{x}/{y}.png")
def render_tile(
    z: int,
    x: int,
    y: int,
    gradient: str = Query("orange", description="Color gradient (orange, blue_red, red)"),
    source: Optional[str] = Query(None, description="Filter by source (strava, ridewithgps)"),
    activity_type: Optional[str] = Query(None, description="Filter by activity type"),
    min_color: Optional[str] = Query(None, description="Custom gradient: min color (hex)"),
    mid_color: Optional[str] = Query(None, description="Custom gradient: mid color (hex)"),
    max_color: Optional[str] = Query(None, description="Custom gradient: max color (hex)"),
    midpoint: Optional[int] = Query(None, description="Custom gradient: midpoint intensity (2-254)"),
    db: Session = Depends(get_db),
):
    """
    Render a map tile with stored tracks colored by overlap intensity.

    Only tracks whose bounding box intersects the (slightly expanded) tile
    are loaded and decoded.

    Returns:
        PNG image tile
    """
    tile = TileCoordinate(x, y, z)
    if not tile.is_valid():
        raise HTTPException(status_code=400, detail="Invalid tile coordinates")

    # Custom colors only apply when all three are provided
    if min_color and mid_color and max_color:
        try:
            palette = LinearGradient.from_hex_colors(
                min_color,
                mid_color,
                max_color,
                10 if midpoint is None else midpoint,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    else:
        palette = GRADIENTS.get(gradient, ORANGE)

    polylines = TrackStore.polylines(
        db,
        source=source,
        activity_type=activity_type,
        bounds=tile.expanded_bounds(TILE_EXPANSION),
    )
    if not polylines:
        return Response(content=empty_tile_png(), media_type="image/png", headers=CACHE_HEADERS)

    rasterizer = TileRasterizer(tile)
    drawn = rasterizer.add_segments(process_polylines(polylines))

    if drawn == 0:
        return Response(content=empty_tile_png(), media_type="image/png", headers=CACHE_HEADERS)

    logger.debug("Tile %d/%d/%d: %d segments from %d tracks", z, x, y, drawn, len(polylines))

    return Response(
        content=rasterizer.render_to_png(palette),
        media_type="image/png",
        headers={
            **CACHE_HEADERS,
            "X-Track-Total": str(len(polylines)),
            "X-Segment-Rendered": str(drawn),
        },
    )
