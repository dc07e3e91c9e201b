"""Database models for the activity heatmap."""
from activity_heatmap.models.track import StoredTrack

__all__ = ["StoredTrack"]
