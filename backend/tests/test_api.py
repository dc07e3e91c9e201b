"""End-to-end tests for the HTTP API with fake provider upstreams."""
from io import BytesIO

import httpx
from PIL import Image

from activity_heatmap.routers import tiles
from activity_heatmap.services.polyline import GeoPoint, encode
from activity_heatmap.services.segments import process_polylines
from activity_heatmap.services.tile_renderer import ORANGE

LA_POLYLINE = encode([GeoPoint(33.87554, -118.39483), GeoPoint(33.88554, -118.38483)])
BEARER = {"Authorization": "Bearer strava-token"}
GPX = b"""<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="tests" xmlns="http://www.topografix.com/GPX/1/1">
  <trk><trkseg>
    <trkpt lat="38.5" lon="-120.2"></trkpt>
    <trkpt lat="38.5001" lon="-120.2001"></trkpt>
    <trkpt lat="38.5002" lon="-120.2002"></trkpt>
  </trkseg></trk>
</gpx>
"""


def _strava_pages(activities):
    def handler(request):
        page = int(request.url.params["page"])
        return httpx.Response(200, json=activities if page == 1 else [])
    return handler


def _import_la_ride(client, upstream):
    upstream.add("GET", "/api/v3/athlete/activities", _strava_pages([{
        "id": 101,
        "name": "Beach Cities",
        "type": "Ride",
        "distance": 1400.0,
        "start_date": "2024-05-01T07:30:00Z",
        "map": {"summary_polyline": LA_POLYLINE},
    }]))
    return client.post("/api/tracks/import/strava", headers=BEARER)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_authorize_urls(client):
    strava = client.get("/api/strava/authorize-url", params={"state": "abc"}).json()
    rwgps = client.get("/api/rwgps/authorize-url", params={"redirect_uri": "http://localhost/cb"}).json()

    assert strava["url"].startswith("https://www.strava.com/oauth/authorize?")
    assert "state=abc" in strava["url"]
    assert rwgps["url"].startswith("https://ridewithgps.com/oauth/authorize?")


def test_strava_token_requires_code(client):
    response = client.post("/api/strava-token", json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing authorization code"


def test_strava_token_returns_upstream_body(client, upstream):
    upstream.add("POST", "/oauth/token", httpx.Response(200, json={"access_token": "abc", "athlete": {"id": 7}}))

    response = client.post("/api/strava-token", json={"code": "the-code"})

    assert response.status_code == 200
    assert response.json() == {"access_token": "abc", "athlete": {"id": 7}}


def test_token_exchange_failure_keeps_upstream_status(client, upstream):
    upstream.add("POST", "/oauth/token", httpx.Response(400, text="bad code"))

    response = client.post("/api/rwgps-token", json={"code": "nope", "redirectUri": "http://localhost/cb"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Token exchange failed"


def test_rwgps_token_requires_redirect_uri(client):
    response = client.post("/api/rwgps-token", json={"code": "abc"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing code or redirectUri"


def test_strava_proxy_requires_token(client):
    response = client.get("/api/strava-activities")

    assert response.status_code == 401
    assert response.json()["detail"] == "Missing authorization header"


def test_strava_proxy_forwards_paging(client, upstream):
    upstream.add("GET", "/api/v3/athlete/activities", httpx.Response(200, json=[{"id": 1}]))

    response = client.get("/api/strava-activities", params={"page": 2, "per_page": 50}, headers=BEARER)

    assert response.json() == [{"id": 1}]
    request = upstream.requests[0]
    assert request.url.params["page"] == "2"
    assert request.url.params["per_page"] == "50"
    assert request.headers["authorization"] == "Bearer strava-token"


def test_expired_strava_token_is_relayed(client, upstream):
    upstream.add("GET", "/api/v3/athlete", httpx.Response(401))

    response = client.get("/api/strava-athlete", headers=BEARER)

    assert response.status_code == 401
    assert response.json() == {
        "detail": "Strava authentication expired. Please reconnect.",
        "provider": "strava",
        "upstream_status": 401,
    }


def test_rwgps_user_accepts_query_token(client, upstream):
    upstream.add("GET", "/users/current.json", httpx.Response(200, json={"user": {"id": 3}}))

    response = client.get("/api/rwgps-user", params={"token": "rw-token"})

    assert response.json() == {"user": {"id": 3}}
    assert upstream.requests[0].headers["authorization"] == "Bearer rw-token"


def test_rwgps_upstream_failure_is_relayed(client, upstream):
    upstream.add("GET", "/users/current/trips.json", httpx.Response(403, text="forbidden"))

    response = client.get("/api/rwgps-trips", params={"token": "rw-token"})

    assert response.status_code == 403
    assert response.json()["provider"] == "ridewithgps"


def test_rwgps_track_checks_token_then_id(client, upstream):
    upstream.add("GET", "/tracks/5.json", httpx.Response(200, json={"track_encoded": "_p~iF~ps|U"}))

    assert client.get("/api/rwgps-track", params={"id": 5}).status_code == 401
    assert client.get("/api/rwgps-track", params={"token": "rw-token"}).status_code == 400

    response = client.get("/api/rwgps-track", params={"id": 5, "token": "rw-token"})
    assert response.json() == {"track_encoded": "_p~iF~ps|U"}


def test_encode_endpoint(client):
    response = client.post("/api/polyline/encode", json={"points": [
        {"latitude": 38.5, "longitude": -120.2},
        {"latitude": 40.7, "longitude": -120.95},
        {"latitude": 43.252, "longitude": -126.453},
    ]})

    assert response.json() == {"polyline": "_p~iF~ps|U_ulLnnqC_mqNvxq`@", "elevations": None}


def test_encode_returns_elevations_beside_polyline(client):
    response = client.post("/api/polyline/encode", json={"points": [
        {"latitude": 38.5, "longitude": -120.2, "elevation": 12.5},
        {"latitude": 40.7, "longitude": -120.95},
    ]})

    assert response.json()["elevations"] == [12.5, None]


def test_encode_rejects_invalid_coordinate(client):
    response = client.post("/api/polyline/encode", json={"points": [
        {"latitude": 38.5, "longitude": -120.2},
        {"latitude": 91.0, "longitude": 0.0},
    ]})

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "InvalidCoordinate"
    assert response.json()["detail"]["index"] == 1


def test_encode_rejects_out_of_range_precision(client):
    response = client.post("/api/polyline/encode", json={"points": [], "precision": 11})
    assert response.status_code == 422


def test_decode_endpoint(client):
    response = client.post("/api/polyline/decode", json={
        "polyline": "_p~iF~ps|U_ulLnnqC",
        "elevations": [100.0, None],
    })

    body = response.json()
    assert body["count"] == 2
    assert body["points"][0] == {"latitude": 38.5, "longitude": -120.2, "elevation": 100.0}
    assert body["points"][1]["elevation"] is None


def test_decode_reports_offset(client):
    response = client.post("/api/polyline/decode", json={"polyline": "_p~iF~ps|"})

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "MalformedPolyline"
    assert response.json()["detail"]["offset"] == 9


def test_decode_rejects_elevation_count_mismatch(client):
    response = client.post("/api/polyline/decode", json={"polyline": "_p~iF~ps|U", "elevations": [1.0, 2.0]})
    assert response.status_code == 422


def test_segments_endpoint(client):
    response = client.post("/api/heatmap/segments", json={"polylines": [
        "_p~iF~ps|U_ulLnnqC",
        "[[38.5, -120.2], [40.7, -120.95]]",
        "_p~iF~ps|",
    ]})

    assert response.json() == {
        "count": 1,
        "segments": [{"start": [38.5, -120.2], "end": [40.7, -120.95], "count": 2}],
    }


def test_gpx_upload(client):
    response = client.post("/api/heatmap/gpx", files=[
        ("files", ("one.gpx", GPX, "application/gpx+xml")),
        ("files", ("two.gpx", GPX, "application/gpx+xml")),
    ])

    body = response.json()
    assert body["count"] == 2
    assert {s["count"] for s in body["segments"]} == {2}


def test_import_list_and_delete_strava_tracks(client, upstream):
    imported = _import_la_ride(client, upstream).json()

    assert imported["new"] == 1
    assert imported["fetched"] == 1

    listed = client.get("/api/tracks", params={"source": "strava"}).json()
    assert listed["count"] == 1
    assert listed["tracks"][0]["external_id"] == "101"
    assert listed["tracks"][0]["polyline"] == LA_POLYLINE

    segments = client.get("/api/heatmap/segments").json()
    assert segments["count"] == 1

    assert client.delete("/api/tracks/strava").json() == {"success": True, "deleted": 1}
    assert client.get("/api/tracks").json()["count"] == 0


def test_import_requires_token(client):
    assert client.post("/api/tracks/import/strava").status_code == 401


def test_import_rwgps_tracks(client, upstream):
    upstream.add("GET", "/users/current/trips.json", httpx.Response(200, json={"results": [
        {"id": 1, "name": "Loop", "departed_at": "2024-05-01T07:30:00Z", "track_encoded": "_p~iF~ps|U_ulLnnqC"},
        {"id": 2, "name": "Manual", "track_points": [{"x": -120.2, "y": 38.5}, {"x": -120.95, "y": 40.7}]},
        {"id": 3, "name": "Empty"},
    ]}))

    result = client.post("/api/tracks/import/rwgps", params={"token": "rw-token"}).json()

    assert result["new"] == 2
    assert result["fetched"] == 3
    tracks = client.get("/api/tracks", params={"source": "ridewithgps"}).json()["tracks"]
    assert {t["polyline"] for t in tracks} == {"_p~iF~ps|U_ulLnnqC"}


def test_delete_unknown_source(client):
    assert client.delete("/api/tracks/garmin").status_code == 404


def test_tile_renders_stored_tracks(client, upstream):
    _import_la_ride(client, upstream)

    response = client.get("/tiles/10/175/409.png")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["x-segment-rendered"] == "1"
    image = Image.open(BytesIO(response.content))
    assert image.size == (512, 512)
    assert image.getextrema()[3][1] == 255


def test_tile_without_tracks_is_empty(client):
    response = client.get("/tiles/3/1/1.png")

    assert response.status_code == 200
    assert "x-segment-rendered" not in response.headers
    assert Image.open(BytesIO(response.content)).getextrema()[3] == (0, 0)


def test_invalid_tile(client):
    assert client.get("/tiles/2/4/0.png").status_code == 400


def test_invalid_custom_gradient(client):
    response = client.get("/tiles/1/0/0.png", params={
        "min_color": "#000000",
        "mid_color": "nope",
        "max_color": "#ffffff",
    })
    assert response.status_code == 400


def test_bearer_without_token_is_rejected(client, upstream):
    response = client.get("/api/strava-activities", headers={"Authorization": "Bearer"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Missing authorization header"
    assert upstream.requests == []


def test_segments_endpoint_skips_payload_with_bad_elevation(client):
    response = client.post("/api/heatmap/segments", json={"polylines": [
        '[[38.5, -120.2, "x"], [38.6, -120.3]]',
        "_p~iF~ps|U_ulLnnqC",
    ]})

    assert response.status_code == 200
    assert response.json()["count"] == 1


def test_tile_only_decodes_tracks_near_the_tile(client, upstream, monkeypatch):
    london = encode([GeoPoint(51.5, -0.12), GeoPoint(51.501, -0.121)])
    upstream.add("GET", "/api/v3/athlete/activities", _strava_pages([
        {"id": 1, "type": "Ride", "map": {"summary_polyline": LA_POLYLINE}},
        {"id": 2, "type": "Ride", "map": {"summary_polyline": london}},
    ]))
    client.post("/api/tracks/import/strava", headers=BEARER)

    decoded = []

    def recording_process_polylines(polylines):
        decoded.extend(polylines)
        return process_polylines(polylines)

    monkeypatch.setattr(tiles, "process_polylines", recording_process_polylines)

    response = client.get("/tiles/10/175/409.png")

    assert response.headers["x-track-total"] == "1"
    assert decoded == [LA_POLYLINE]


def test_tile_rejects_signed_hex_color(client):
    response = client.get("/tiles/1/0/0.png", params={
        "min_color": "#-1ffff",
        "mid_color": "#808080",
        "max_color": "#ffffff",
    })
    assert response.status_code == 400


def test_tile_passes_explicit_zero_midpoint(client, monkeypatch):
    midpoints = []

    def recording_from_hex_colors(min_color, mid_color, max_color, midpoint=10):
        midpoints.append(midpoint)
        return ORANGE

    monkeypatch.setattr(tiles.LinearGradient, "from_hex_colors", staticmethod(recording_from_hex_colors))

    client.get("/tiles/1/0/0.png", params={
        "min_color": "#000000",
        "mid_color": "#808080",
        "max_color": "#ffffff",
        "midpoint": 0,
    })

    assert midpoints == [0]
