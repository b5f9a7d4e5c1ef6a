import threading

import pytest

from alumni_geo.core.config import Settings
from alumni_geo.geo.dataset import DatasetLoader
from alumni_geo.jobs import server
from alumni_geo.models import AlumniRecord, CuratedLocation

CURATED = [
    CuratedLocation(id=1, standard_name="Example University", aliases=("Ex U",), latitude=10, longitude=20),
    CuratedLocation(id=2, standard_name="Broken College", latitude="n/a", longitude=None),
]
ALUMNI = [
    AlumniRecord(id=1, raw_institution_name="ex u", first_name="Ann", last_name="Lee", cohort_year=2020),
    AlumniRecord(id=2, raw_institution_name="Ex U", first_name="Bo", last_name="Kim", cohort_year=2021),
    AlumniRecord(id=3, raw_institution_name="Broken College", first_name="Cy", last_name="Ng", cohort_year=2021),
    AlumniRecord(id=4, raw_institution_name="Works at Acme Corp", first_name="Di", last_name="Oh", cohort_year=2022),
    AlumniRecord(id=5, raw_institution_name=None, first_name="Ed", last_name="Po", cohort_year=2022),
]


class DummyExecutor:
    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args, **kwargs):
        self.submitted.append(fn)


@pytest.fixture
def executor(monkeypatch):
    dummy = DummyExecutor()
    monkeypatch.setattr(server, "_executor", dummy)
    return dummy


@pytest.fixture
def client(monkeypatch, executor):
    loader = DatasetLoader(None)
    monkeypatch.setattr(server, "get_loader", lambda: loader)
    monkeypatch.setattr(server, "get_settings", lambda: Settings(database_url="postgres://"))
    monkeypatch.setattr(server.db, "fetch_curated_locations", lambda: list(CURATED))
    monkeypatch.setattr(server.db, "fetch_alumni", lambda: list(ALUMNI))
    server.app.config["TESTING"] = True
    with server.app.test_client() as test_client:
        yield test_client


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_map_config(client):
    payload = client.get("/map-config").get_json()
    assert "{z}/{x}/{y}" in payload["tileUrlTemplate"]
    assert "OpenStreetMap" in payload["attribution"]


def test_alumni_locations(client):
    rows = client.get("/alumni-locations").get_json()

    assert [row["hasLocation"] for row in rows] == [True, True, False, False, False]
    assert rows[0]["locationSource"] == "curated"
    assert rows[0]["displayLatitude"] != rows[1]["displayLatitude"]
    assert rows[4]["college"] == "Unknown"


def test_unmapped_colleges(client):
    groups = client.get("/unmapped-colleges").get_json()
    assert groups == [
        {"collegeName": "Broken College", "studentCount": 1, "students": [{"firstName": "Cy", "lastName": "Ng", "cohortYear": 2021}]},
        {"collegeName": "Unknown", "studentCount": 1, "students": [{"firstName": "Ed", "lastName": "Po", "cohortYear": 2022}]},
    ]


def test_unmapped_analysis(client):
    payload = client.get("/unmapped-analysis").get_json()
    assert payload["total"] == 2
    assert payload["nonCollegeFiltered"] == 1


def test_clusters_and_children(client):
    payload = client.get("/clusters?bbox=-180,-85,180,85&zoom=3").get_json()
    [feature] = payload["features"]
    assert feature["properties"]["cluster"] is True
    assert feature["properties"]["point_count"] == 2

    cluster_id = feature["properties"]["cluster_id"]
    children = client.get(f"/clusters/{cluster_id}/children").get_json()
    assert sorted(f["properties"]["id"] for f in children["features"]) == [1, 2]

    zoom = client.get(f"/clusters/{cluster_id}/expansion-zoom").get_json()
    assert zoom["expansionZoom"] == 21


def test_clusters_bad_input_and_unknown_id(client):
    assert client.get("/clusters?bbox=1,2,3&zoom=3").status_code == 400
    assert client.get("/clusters?zoom=abc").status_code == 400
    assert client.get("/clusters?zoom=nan").status_code == 400
    assert client.get("/clusters?zoom=inf").status_code == 400
    assert client.get("/clusters?bbox=-180,-85,inf,85&zoom=3").status_code == 400
    assert client.get("/clusters/999999/children").status_code == 404
    assert client.get("/clusters/999999/expansion-zoom").status_code == 404


def test_list_college_locations(client):
    payload = client.get("/college-locations").get_json()
    assert payload[0]["standardName"] == "Example University"
    assert payload[0]["aliases"] == ["Ex U"]


def test_add_college_location(client, executor, monkeypatch):
    stored = []

    def fake_insert(college_name, standard_name, latitude, longitude):
        stored.append((college_name, standard_name, latitude, longitude))
        return 42

    monkeypatch.setattr(server.db, "insert_curated_location", fake_insert)

    response = client.post(
        "/college-locations",
        json={"collegeName": "Broken College", "standardName": "Broken College", "latitude": "41.5", "longitude": -72},
    )
    assert response.status_code == 201
    assert response.get_json()["data"]["id"] == 42
    assert stored == [("Broken College", "Broken College", 41.5, -72.0)]
    assert executor.submitted == [server._reload_safe]


@pytest.mark.parametrize(
    "payload",
    [
        {"standardName": "X", "latitude": 1, "longitude": 2},
        {"collegeName": "X", "standardName": "X", "latitude": "north", "longitude": 2},
        {"collegeName": "X", "standardName": "X", "latitude": 95, "longitude": 2},
    ],
)
def test_add_college_location_validation(client, payload):
    response = client.post("/college-locations", json=payload)
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_reload_is_queued(client, executor):
    response = client.post("/dataset/reload")

    assert response.status_code == 202
    assert executor.submitted == [server._reload_safe]


def test_reload_safe_logs_failures(monkeypatch, caplog):
    def boom():
        raise RuntimeError("db down")

    monkeypatch.setattr(server, "load_dataset", boom)
    with caplog.at_level("ERROR"):
        server._reload_safe()
    assert "Dataset reload failed" in " ".join(caplog.messages)


def test_reads_share_the_cached_snapshot(client, monkeypatch):
    fetches = []
    monkeypatch.setattr(server.db, "fetch_alumni", lambda: fetches.append(1) or list(ALUMNI))

    client.get("/alumni-locations")
    client.get("/unmapped-colleges")
    client.get("/unmapped-analysis")
    client.get("/clusters?zoom=3")

    assert fetches == [1]
    assert server.get_loader().generation == 1


def test_places_backend_without_key_still_serves(monkeypatch, executor):
    monkeypatch.setattr(
        server, "get_settings", lambda: Settings(database_url="postgres://", resolution_backend="places")
    )
    monkeypatch.setattr(server.db, "fetch_curated_locations", lambda: list(CURATED))
    monkeypatch.setattr(server.db, "fetch_alumni", lambda: list(ALUMNI))
    server.get_loader.cache_clear()
    try:
        with server.app.test_client() as test_client:
            assert test_client.get("/healthz").status_code == 200
            rows = test_client.get("/alumni-locations").get_json()
    finally:
        server.get_loader.cache_clear()

    assert [row["hasLocation"] for row in rows] == [True, True, False, False, False]


class GatedService:
    """Each resolve call blocks until the test opens its gate."""

    def __init__(self):
        self.entered = [threading.Event(), threading.Event()]
        self.gates = [threading.Event(), threading.Event()]
        self._lock = threading.Lock()
        self.calls = 0

    def resolve_names(self, names):
        with self._lock:
            call = self.calls
            self.calls += 1
        self.entered[call].set()
        self.gates[call].wait(timeout=5)
        return []


def test_superseded_first_load_still_returns_a_snapshot(monkeypatch):
    service = GatedService()
    loader = DatasetLoader(service)
    monkeypatch.setattr(server, "get_loader", lambda: loader)
    monkeypatch.setattr(server.db, "fetch_curated_locations", lambda: list(CURATED))
    monkeypatch.setattr(server.db, "fetch_alumni", lambda: list(ALUMNI))

    results = {}

    def run(name):
        results[name] = server.load_dataset()

    first = threading.Thread(target=run, args=("first",))
    second = threading.Thread(target=run, args=("second",))
    first.start()
    assert service.entered[0].wait(timeout=5)
    second.start()
    assert service.entered[1].wait(timeout=5)

    service.gates[0].set()
    first.join(timeout=5)
    assert loader.snapshot is None
    assert results["first"] is not None
    assert results["first"].generation == 1
    assert len(results["first"].rows) == len(ALUMNI)

    service.gates[1].set()
    second.join(timeout=5)
    assert results["second"] is loader.snapshot
    assert results["second"].generation == 2
