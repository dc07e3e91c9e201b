"""Track model for storing imported provider tracks."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, DateTime, Text, UniqueConstraint

from activity_heatmap.database import Base


class StoredTrack(Base):
    """
    A track imported from Strava or RideWithGPS.

    Only the encoded polyline and descriptive metadata are kept; provider
    tokens are never written to the database.
    """
    __tablename__ = "tracks"
    __table_args__ = (
        UniqueConstraint("source", "external_id", name="uq_tracks_source_external_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    source = Column(String, nullable=False, index=True)  # strava, ridewithgps
    external_id = Column(String, nullable=False)

    # Track details
    name = Column(String, nullable=True)
    activity_type = Column(String, nullable=True, index=True)  # Run, Ride, cycling, etc.
    start_date = Column(DateTime, nullable=True, index=True)
    distance = Column(Float, nullable=True)  # Distance in meters
    polyline = Column(Text, nullable=False)  # Encoded polyline, precision 5
    point_count = Column(Integer, nullable=False, default=0)

    # Bounding box in Web Mercator meters for tile queries
    bbox_min_x = Column(Float, nullable=True, index=True)
    bbox_min_y = Column(Float, nullable=True, index=True)
    bbox_max_x = Column(Float, nullable=True, index=True)
    bbox_max_y = Column(Float, nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<StoredTrack(id={self.id}, source={self.source}, external_id={self.external_id}, name='{self.name}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "source": self.source,
            "external_id": self.external_id,
            "name": self.name,
            "activity_type": self.activity_type,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "distance": self.distance,
            "polyline": self.polyline,
            "point_count": self.point_count,
        }
