"""Tests for the HTTP API."""

from fastapi.testclient import TestClient

from facility_status.backends import MemoryRepository
from facility_status.server import create_app

FACILITY_ID = "09a22593-2be8-46f6-ae54-2904b04e13a4"
SITE_ID = "ce2bbc49-ba63-4711-8f36-43b74ec2fe45"
LOCATION_ID = "b1c7773f-4624-4787-b1e9-46e1c78c3320"
IRIS_ID = "29989783-bc70-4cc8-880f-f2176d6cec20"
CPU_ID = "f8a06086-b79b-4f45-beec-abb8bee38fa1"
GLOBUS_ID = "13f886ac-6cc2-47c0-a5d4-d82daf3cf5c6"
DTNS_ID = "057c3750-4ba1-4b51-accf-b160be683d80"
MAINTENANCE_ID = "6ecf5a32-5b8d-4f0f-9b1e-2f6c3c1e0a01"
GLOBUS_INCIDENT_ID = "7a1d2b44-8c3e-4d5f-a6b7-3e8d4f2a0b02"
CPU_DOWN_EVENT_ID = "8b2e3c55-9d4f-4e60-b7c8-4f9e5a3b1c03"
PROJECT_ID = "f295adcc-04b6-47d7-9e3f-b065c1a0830a"
USER_ALLOCATION_ID = "14b7cfee-26d8-49f9-9051-d287e3c2a52c"

STATUS = "/api/v1/status"
ACCOUNT = "/api/v1/account"


def test_status_discovery(client: TestClient) -> None:
    """Test the status discovery document lists every collection."""
    response = client.get(STATUS)
    assert response.status_code == 200
    body = response.json()
    assert [entry["id"] for entry in body] == ["facility", "sites", "locations", "resources", "incidents", "events"]
    assert body[0]["version"] == "v1"
    assert body[0]["link"]["rel"] == "self"
    assert body[0]["link"]["href"] == "http://testserver/api/v1/status/facility"


def test_account_discovery(client: TestClient) -> None:
    """Test the account discovery document."""
    response = client.get(ACCOUNT)
    assert response.status_code == 200
    assert [entry["id"] for entry in response.json()] == [
        "capabilities",
        "projects",
        "project_allocations",
        "user_allocations",
    ]


def test_get_facility(client: TestClient) -> None:
    """Test the facility singleton and its 30 links."""
    response = client.get(f"{STATUS}/facility")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == FACILITY_ID
    assert body["short_name"] == "NERSC"
    assert body["organization_name"] == "Lawrence Berkeley National Laboratory"
    assert len(body["_links"]) == 30
    assert response.headers["Last-Modified"] == "Mon, 03 Mar 2025 20:57:49 GMT"
    assert response.headers["Content-Location"] == f"http://testserver{STATUS}/facility"


def test_get_facility_by_id(client: TestClient) -> None:
    """Test the facility by id and a wrong id."""
    assert client.get(f"{STATUS}/facility/{FACILITY_ID}").json()["id"] == FACILITY_ID
    assert client.get(f"{STATUS}/facility/{IRIS_ID}").status_code == 404


def test_missing_facility_is_internal_error() -> None:
    """Test an empty repository reports the missing facility as a server error."""
    client = TestClient(create_app(MemoryRepository()))
    response = client.get(f"{STATUS}/facility")
    assert response.status_code == 500
    body = response.json()
    assert body["title"] == "Internal Server Error"
    assert body["detail"] == "No facility has been configured"


def test_get_resource(client: TestClient) -> None:
    """Test a resource by id."""
    response = client.get(f"{STATUS}/resources/{IRIS_ID}")
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "iris.nersc.gov"
    assert body["type"] == "website"
    assert body["self_uri"] == f"{STATUS}/resources/{IRIS_ID}"
    assert response.headers["Last-Modified"] == "Mon, 03 Mar 2025 07:51:20 GMT"


def test_get_resource_is_idempotent(client: TestClient) -> None:
    """Test repeated reads return identical bodies."""
    first = client.get(f"{STATUS}/resources/{IRIS_ID}")
    second = client.get(f"{STATUS}/resources/{IRIS_ID}")
    assert first.content == second.content


def test_get_resource_not_found(client: TestClient) -> None:
    """Test an unknown resource returns a structured 404."""
    response = client.get(f"{STATUS}/resources/bad-id")
    assert response.status_code == 404
    body = response.json()
    assert body["title"] == "Not Found"
    assert body["status"] == 404
    assert body["type"] == "about:blank"
    assert body["detail"] == f"The resource http://testserver{STATUS}/resources/bad-id was not found."
    assert body["instance"] == f"http://testserver{STATUS}/resources/bad-id"
    assert "timestamp" in body


def test_resource_of_wrong_kind_not_found(client: TestClient) -> None:
    """Test an event id is not found as a resource."""
    assert client.get(f"{STATUS}/resources/{CPU_DOWN_EVENT_ID}").status_code == 404


def test_resources_collection(client: TestClient) -> None:
    """Test the resource collection and its Last-Modified header."""
    response = client.get(f"{STATUS}/resources")
    assert response.status_code == 200
    assert len(response.json()) == 20
    assert response.headers["Last-Modified"] == "Tue, 11 Mar 2025 07:28:24 GMT"


def test_resources_not_modified(client: TestClient) -> None:
    """Test the collection is not modified at its latest timestamp."""
    response = client.get(f"{STATUS}/resources", headers={"If-Modified-Since": "Tue, 11 Mar 2025 07:28:24 GMT"})
    assert response.status_code == 304
    assert response.content == b""
    assert response.headers["Last-Modified"] == "Tue, 11 Mar 2025 07:28:24 GMT"


def test_resources_partially_modified(client: TestClient) -> None:
    """Test only resources changed after the client date are returned."""
    response = client.get(f"{STATUS}/resources", headers={"If-Modified-Since": "Mon, 10 Mar 2025 00:00:00 GMT"})
    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == [DTNS_ID]


def test_filters_apply_after_freshness(client: TestClient) -> None:
    """Test query filters narrow the freshness result further."""
    response = client.get(
        f"{STATUS}/resources",
        params={"group": "websites"},
        headers={"If-Modified-Since": "Mon, 10 Mar 2025 00:00:00 GMT"},
    )
    assert response.status_code == 200
    assert response.json() == []


def test_malformed_if_modified_since_is_ignored(client: TestClient) -> None:
    """Test a malformed header is treated as absent."""
    response = client.get(f"{STATUS}/resources", headers={"If-Modified-Since": "yesterday"})
    assert response.status_code == 200
    assert len(response.json()) == 20


def test_resources_filter_intersection(client: TestClient) -> None:
    """Test group and type filters intersect."""
    response = client.get(f"{STATUS}/resources", params={"group": "storage", "type": "storage"})
    body = response.json()
    assert len(body) == 6
    assert all(r["group"] == "storage" and r["type"] == "storage" for r in body)


def test_resource_not_modified(client: TestClient) -> None:
    """Test a single resource is not modified at its own timestamp."""
    response = client.get(
        f"{STATUS}/resources/{IRIS_ID}",
        headers={"If-Modified-Since": "Mon, 03 Mar 2025 07:51:20 GMT"},
    )
    assert response.status_code == 304
    assert response.headers["Last-Modified"] == "Mon, 03 Mar 2025 07:51:20 GMT"


def test_resource_include(client: TestClient) -> None:
    """Test related entities are embedded on request."""
    response = client.get(f"{STATUS}/resources/{GLOBUS_ID}", params={"include": ["memberOf", "dependsOn"]})
    body = response.json()
    assert [f["id"] for f in body["_embedded"]["memberOf"]] == [FACILITY_ID]
    assert [r["short_name"] for r in body["_embedded"]["dependsOn"]] == ["network"]


def test_resource_without_include_has_no_embedding(client: TestClient) -> None:
    """Test no embedded key is emitted without includes."""
    assert "_embedded" not in client.get(f"{STATUS}/resources/{GLOBUS_ID}").json()
    response = client.get(f"{STATUS}/resources/{IRIS_ID}", params={"include": "hasIncident"})
    assert "_embedded" not in response.json()


def test_incidents_filters(client: TestClient) -> None:
    """Test incident type and time filters."""
    response = client.get(f"{STATUS}/incidents", params={"type": "planned"})
    assert [i["id"] for i in response.json()] == [MAINTENANCE_ID]

    response = client.get(f"{STATUS}/incidents", params={"time": "2025-03-11T08:00:00Z"})
    assert [i["id"] for i in response.json()] == [GLOBUS_INCIDENT_ID]

    response = client.get(f"{STATUS}/incidents", params={"from": "2025-03-12T19:00:00Z", "to": "2025-03-13T00:00:00Z"})
    assert len(response.json()) == 2


def test_incidents_invalid_time(client: TestClient) -> None:
    """Test a malformed time is a bad request."""
    response = client.get(f"{STATUS}/incidents", params={"time": "noon"})
    assert response.status_code == 400
    body = response.json()
    assert body["title"] == "Bad Request"
    assert body["detail"].startswith("The request is invalid: ")


def test_incident_events(client: TestClient) -> None:
    """Test the events of an incident."""
    response = client.get(f"{STATUS}/incidents/{GLOBUS_INCIDENT_ID}/events")
    assert response.status_code == 200
    assert len(response.json()) == 3
    assert client.get(f"{STATUS}/incidents/{IRIS_ID}/events").status_code == 404


def test_incident_include(client: TestClient) -> None:
    """Test an incident embeds its events and impacted resources."""
    response = client.get(f"{STATUS}/incidents/{MAINTENANCE_ID}", params={"include": ["hasEvent", "mayImpact"]})
    embedded = response.json()["_embedded"]
    assert len(embedded["hasEvent"]) == 2
    assert len(embedded["mayImpact"]) == 4


def test_events_filters(client: TestClient) -> None:
    """Test event filters."""
    response = client.get(f"{STATUS}/events", params={"status": "degraded"})
    assert len(response.json()) == 3
    response = client.get(f"{STATUS}/events", params={"from": "2025-03-12T00:00:00Z"})
    assert len(response.json()) == 2


def test_event_resource_and_incident(client: TestClient) -> None:
    """Test an event's resource and incident are dereferenced."""
    resource = client.get(f"{STATUS}/events/{CPU_DOWN_EVENT_ID}/resource")
    assert resource.status_code == 200
    assert resource.json()["id"] == CPU_ID

    incident = client.get(f"{STATUS}/events/{CPU_DOWN_EVENT_ID}/incident")
    assert incident.status_code == 200
    assert incident.json()["id"] == MAINTENANCE_ID


def test_site_location(client: TestClient) -> None:
    """Test a site's location is dereferenced."""
    response = client.get(f"{STATUS}/sites/{SITE_ID}/location")
    assert response.status_code == 200
    assert response.json()["id"] == LOCATION_ID
    assert response.json()["unlocode"] == "US JBK"
    assert client.get(f"{STATUS}/sites/{LOCATION_ID}/location").status_code == 404


def test_location_include(client: TestClient) -> None:
    """Test a location embeds its sites."""
    response = client.get(f"{STATUS}/locations/{LOCATION_ID}", params={"include": "hasSite"})
    assert [s["id"] for s in response.json()["_embedded"]["hasSite"]] == [SITE_ID]


def test_proxied_uris(proxied_client: TestClient) -> None:
    """Test outbound URIs are rewritten for the proxy."""
    response = proxied_client.get(f"{STATUS}/resources/{GLOBUS_ID}", params={"include": "memberOf"})
    body = response.json()
    base = "https://iri.example.org"
    assert body["self_uri"] == f"{base}{STATUS}/resources/{GLOBUS_ID}"
    assert all(link["href"].startswith(base) for link in body["_links"])
    assert body["_embedded"]["memberOf"][0]["self_uri"] == f"{base}{STATUS}/facility/{FACILITY_ID}"


def test_proxied_facility_keeps_external_links(proxied_client: TestClient) -> None:
    """Test links outside the proxied prefix are left alone."""
    body = proxied_client.get(f"{STATUS}/facility").json()
    support = [link for link in body["_links"] if link["rel"] == "hasSupportURL"]
    assert support == [{"rel": "hasSupportURL", "href": "https://help.nersc.gov/"}]


def test_proxy_does_not_change_repository(proxied_client: TestClient, client: TestClient) -> None:
    """Test rewriting URIs for one response leaves stored entities untouched."""
    proxied_client.get(f"{STATUS}/resources/{IRIS_ID}")
    assert client.get(f"{STATUS}/resources/{IRIS_ID}").json()["self_uri"] == f"{STATUS}/resources/{IRIS_ID}"


def test_account_collections(client: TestClient) -> None:
    """Test account collections and filters."""
    assert len(client.get(f"{ACCOUNT}/capabilities").json()) == 2
    assert [p["id"] for p in client.get(f"{ACCOUNT}/projects", params={"user_id": "alice"}).json()] == [PROJECT_ID]
    assert client.get(f"{ACCOUNT}/projects", params={"user_id": "carol"}).json() == []
    assert len(client.get(f"{ACCOUNT}/project_allocations").json()) == 1


def test_user_allocation(client: TestClient) -> None:
    """Test a user allocation by id."""
    response = client.get(f"{ACCOUNT}/user_allocations/{USER_ALLOCATION_ID}")
    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == "alice"
    assert body["entries"] == [{"allocation": 50000.0, "usage": 1200.0, "unit": "node_hours"}]


def test_fallback_not_found(client: TestClient) -> None:
    """Test unknown API paths return a structured 404."""
    response = client.get(f"{STATUS}/nothing")
    assert response.status_code == 404
    body = response.json()
    assert body["title"] == "Not Found"
    assert body["detail"] == f"No handler for {STATUS}/nothing"


def test_facility_scoped_aliases(client: TestClient) -> None:
    """Test collections are also served under /status/facility and /facility."""
    expected = client.get(f"{STATUS}/resources").json()
    for path in (f"{STATUS}/facility/resources", "/api/v1/facility/resources"):
        response = client.get(path)
        assert response.status_code == 200
        assert response.json() == expected
        assert response.headers["Content-Location"].endswith(path)

    assert len(client.get(f"{STATUS}/facility/sites").json()) == 1
    assert len(client.get(f"{STATUS}/facility/locations").json()) == 1
    assert len(client.get("/api/v1/facility/incidents").json()) == 2
    assert len(client.get("/api/v1/facility/events").json()) == 5


def test_facility_scoped_item_aliases(client: TestClient) -> None:
    """Test single items and sub-resources resolve through the aliases."""
    assert client.get(f"/api/v1/facility/resources/{IRIS_ID}").json()["id"] == IRIS_ID
    assert client.get(f"{STATUS}/facility/sites/{SITE_ID}/location").json()["id"] == LOCATION_ID
    assert len(client.get(f"/api/v1/facility/incidents/{GLOBUS_INCIDENT_ID}/events").json()) == 3
    assert client.get(f"{STATUS}/facility/events/{CPU_DOWN_EVENT_ID}").json()["id"] == CPU_DOWN_EVENT_ID

    # The facility itself is still reachable by id.
    assert client.get(f"{STATUS}/facility/{FACILITY_ID}").json()["id"] == FACILITY_ID
    assert client.get("/api/v1/facility/sites").status_code == 404
