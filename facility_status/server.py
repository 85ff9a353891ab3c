"""Read-only HTTP API over the facility status repository."""

from typing import Any, Callable, Sequence, TypeVar

import structlog
from fastapi import APIRouter, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from facility_status import relationships as rel
from facility_status.backend import Repository
from facility_status.conditional import evaluate_collection, evaluate_single, format_http_date
from facility_status.embedding import process_includes
from facility_status.errors import (
    FacilityStatusError,
    InvalidArgumentError,
    NotFoundError,
    bad_request_error,
    error_body,
    internal_server_error,
    not_found_error,
)
from facility_status.filters import (
    filter_events,
    filter_incidents,
    filter_locations,
    filter_named,
    filter_projects,
    filter_resources,
    filter_user_allocations,
)
from facility_status.models import (
    Capability,
    Event,
    Facility,
    Incident,
    Location,
    NamedObject,
    Project,
    ProjectAllocation,
    Resource,
    Site,
    UserAllocation,
)
from facility_status.url_transform import UrlTransform

logger = structlog.get_logger()

T = TypeVar("T", bound=NamedObject)

API_VERSION = "v1"
API_PREFIX = "/api/v1"
STATUS_PREFIX = "/api/v1/status"
ACCOUNT_PREFIX = "/api/v1/account"

# (id, path, media type) per discovery document.
STATUS_ENDPOINTS = (
    ("facility", "/facility", rel.FACILITY),
    ("sites", "/sites", rel.SITES),
    ("locations", "/locations", rel.LOCATIONS),
    ("resources", "/resources", rel.RESOURCES),
    ("incidents", "/incidents", rel.INCIDENTS),
    ("events", "/events", rel.EVENTS),
)
ACCOUNT_ENDPOINTS = (
    ("capabilities", "/capabilities", rel.CAPABILITIES),
    ("projects", "/projects", rel.PROJECTS),
    ("project_allocations", "/project_allocations", rel.PROJECT_ALLOCATIONS),
    ("user_allocations", "/user_allocations", rel.USER_ALLOCATIONS),
)


def _location(request: Request, transform: UrlTransform) -> str:
    return transform.apply(str(request.url)) or str(request.url)


def _render(entity: NamedObject, transform: UrlTransform) -> dict[str, Any]:
    entity.transform_uris(transform)
    return entity.to_dict()


def _discovery(request: Request, transform: UrlTransform, prefix: str, table: Sequence[tuple[str, str, str]]) -> Any:
    base = str(request.base_url).rstrip("/") + prefix
    return JSONResponse(
        [
            {
                "id": name,
                "version": API_VERSION,
                "link": {"rel": rel.SELF, "href": transform.apply(base + path), "type": media_type},
            }
            for name, path, media_type in table
        ]
    )


class Responder:
    """Builds conditional responses for one repository and URL transform."""

    def __init__(self, repository: Repository, transform: UrlTransform) -> None:
        self.repository = repository
        self.transform = transform

    def single(
        self,
        request: Request,
        entity: NamedObject | None,
        if_modified_since: str | None,
        include: list[str] | None = None,
    ) -> Response:
        if entity is None:
            raise NotFoundError(str(request.url))
        location = _location(request, self.transform)
        result = evaluate_single(entity, if_modified_since)
        headers = {"Content-Location": location, "Last-Modified": format_http_date(result.last_modified)}
        if result.not_modified:
            return Response(status_code=304, headers=headers)

        bundle = process_includes(entity, self.repository, include)
        body = _render(entity, self.transform)
        if bundle is not None:
            body["_embedded"] = {
                relation: [_render(target, self.transform) for target in targets]
                for relation, targets in bundle.items()
            }
        return JSONResponse(body, headers=headers)

    def collection(
        self,
        request: Request,
        items: Sequence[T],
        if_modified_since: str | None,
        apply_filters: Callable[[list[T]], list[T]] | None = None,
    ) -> Response:
        location = _location(request, self.transform)
        result = evaluate_collection(items, if_modified_since)
        headers = {"Content-Location": location, "Last-Modified": format_http_date(result.last_modified)}
        if result.not_modified:
            return Response(status_code=304, headers=headers)

        selected = apply_filters(result.items) if apply_filters else result.items
        return JSONResponse([_render(item, self.transform) for item in selected], headers=headers)

    def lookup(self, entity_id: str, entity_type: type[T]) -> T | None:
        logger.debug("Looking up entity", id=entity_id, kind=entity_type.kind)
        return self.repository.get_of_type(entity_id, entity_type)

    def follow(self, href: str | None, entity_type: type[T]) -> T | None:
        if not href:
            return None
        return self.repository.get_by_href(href, entity_type)

    def first_link(self, entity: NamedObject, *relations: str) -> str | None:
        for relation in relations:
            for link in entity.links:
                if rel.local_name(link.relation) == relation:
                    return link.href
        return None


def status_router(responder: Responder) -> APIRouter:
    """Routes under /api/v1/status, plus the /status/facility and /facility aliases."""
    router = APIRouter(prefix=API_PREFIX)
    repository = responder.repository

    @router.get("/status")
    def get_status_discovery(request: Request) -> Any:
        return _discovery(request, responder.transform, STATUS_PREFIX, STATUS_ENDPOINTS)

    @router.get("/status/facility")
    def get_facility(
        request: Request,
        include: list[str] | None = Query(None),
        if_modified_since: str | None = Header(None),
    ) -> Response:
        facility = repository.find_one_of_type(Facility)
        if facility is None:
            raise FacilityStatusError("No facility has been configured")
        return responder.single(request, facility, if_modified_since, include)

    @router.get("/status/sites")
    @router.get("/status/facility/sites")
    def get_sites(
        request: Request,
        name: str | None = None,
        short_name: str | None = None,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.collection(
            request,
            repository.find_all_of_type(Site),
            if_modified_since,
            lambda items: filter_named(items, name, short_name),
        )

    @router.get("/status/sites/{site_id}")
    @router.get("/status/facility/sites/{site_id}")
    def get_site(
        site_id: str,
        request: Request,
        include: list[str] | None = Query(None),
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(site_id, Site), if_modified_since, include)

    @router.get("/status/sites/{site_id}/location")
    @router.get("/status/facility/sites/{site_id}/location")
    def get_site_location(
        site_id: str,
        request: Request,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        site = responder.lookup(site_id, Site)
        if site is None:
            raise NotFoundError(str(request.url))
        href = site.location_uri or responder.first_link(site, rel.HAS_LOCATION, rel.LOCATED_AT)
        return responder.single(request, responder.follow(href, Location), if_modified_since)

    @router.get("/status/locations")
    @router.get("/status/facility/locations")
    def get_locations(
        request: Request,
        name: str | None = None,
        short_name: str | None = None,
        country_name: str | None = None,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.collection(
            request,
            repository.find_all_of_type(Location),
            if_modified_since,
            lambda items: filter_locations(items, name, short_name, country_name),
        )

    @router.get("/status/locations/{location_id}")
    @router.get("/status/facility/locations/{location_id}")
    def get_location(
        location_id: str,
        request: Request,
        include: list[str] | None = Query(None),
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(location_id, Location), if_modified_since, include)

    @router.get("/status/resources")
    @router.get("/status/facility/resources")
    @router.get("/facility/resources")
    def get_resources(
        request: Request,
        group: str | None = None,
        type_: str | None = Query(None, alias="type"),
        resource_type: str | None = None,
        short_name: str | None = None,
        current_status: list[str] | None = Query(None),
        capability: list[str] | None = Query(None),
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.collection(
            request,
            repository.find_all_of_type(Resource),
            if_modified_since,
            lambda items: filter_resources(
                items,
                group=group,
                resource_type=type_ or resource_type,
                short_name=short_name,
                current_status=current_status,
                capability=capability,
            ),
        )

    @router.get("/status/resources/{resource_id}")
    @router.get("/status/facility/resources/{resource_id}")
    @router.get("/facility/resources/{resource_id}")
    def get_resource(
        resource_id: str,
        request: Request,
        include: list[str] | None = Query(None),
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(resource_id, Resource), if_modified_since, include)

    @router.get("/status/incidents")
    @router.get("/status/facility/incidents")
    @router.get("/facility/incidents")
    def get_incidents(
        request: Request,
        status: str | None = None,
        type_: str | None = Query(None, alias="type"),
        resolution: str | None = None,
        time: str | None = None,
        start: str | None = Query(None, alias="from"),
        end: str | None = Query(None, alias="to"),
        short_name: str | None = None,
        resources: list[str] | None = Query(None),
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.collection(
            request,
            repository.find_all_of_type(Incident),
            if_modified_since,
            lambda items: filter_incidents(
                items,
                status=status,
                incident_type=type_,
                resolution=resolution,
                time=time,
                start=start,
                end=end,
                short_name=short_name,
                resources=resources,
            ),
        )

    @router.get("/status/incidents/{incident_id}")
    @router.get("/status/facility/incidents/{incident_id}")
    @router.get("/facility/incidents/{incident_id}")
    def get_incident(
        incident_id: str,
        request: Request,
        include: list[str] | None = Query(None),
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(incident_id, Incident), if_modified_since, include)

    @router.get("/status/incidents/{incident_id}/events")
    @router.get("/status/facility/incidents/{incident_id}/events")
    @router.get("/facility/incidents/{incident_id}/events")
    def get_incident_events(
        incident_id: str,
        request: Request,
        status: str | None = None,
        short_name: str | None = None,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        incident = responder.lookup(incident_id, Incident)
        if incident is None:
            raise NotFoundError(str(request.url))
        hrefs = incident.event_uris or [link.href for link in incident.links_for(rel.HAS_EVENT)]
        events = [event for event in (responder.follow(href, Event) for href in hrefs) if event is not None]
        return responder.collection(
            request,
            events,
            if_modified_since,
            lambda items: filter_events(items, status=status, short_name=short_name),
        )

    @router.get("/status/events")
    @router.get("/status/facility/events")
    @router.get("/facility/events")
    def get_events(
        request: Request,
        status: str | None = None,
        short_name: str | None = None,
        start: str | None = Query(None, alias="from"),
        end: str | None = Query(None, alias="to"),
        resource_id: str | None = None,
        incident_id: str | None = None,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.collection(
            request,
            repository.find_all_of_type(Event),
            if_modified_since,
            lambda items: filter_events(
                items,
                status=status,
                short_name=short_name,
                start=start,
                end=end,
                resource_id=resource_id,
                incident_id=incident_id,
            ),
        )

    @router.get("/status/events/{event_id}")
    @router.get("/status/facility/events/{event_id}")
    @router.get("/facility/events/{event_id}")
    def get_event(
        event_id: str,
        request: Request,
        include: list[str] | None = Query(None),
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(event_id, Event), if_modified_since, include)

    @router.get("/status/events/{event_id}/resource")
    @router.get("/status/facility/events/{event_id}/resource")
    @router.get("/facility/events/{event_id}/resource")
    def get_event_resource(
        event_id: str,
        request: Request,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        event = responder.lookup(event_id, Event)
        if event is None:
            raise NotFoundError(str(request.url))
        href = event.resource_uri or responder.first_link(event, rel.IMPACTS)
        return responder.single(request, responder.follow(href, Resource), if_modified_since)

    @router.get("/status/events/{event_id}/incident")
    @router.get("/status/facility/events/{event_id}/incident")
    @router.get("/facility/events/{event_id}/incident")
    def get_event_incident(
        event_id: str,
        request: Request,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        event = responder.lookup(event_id, Event)
        if event is None:
            raise NotFoundError(str(request.url))
        href = event.incident_uri or responder.first_link(event, rel.GENERATED_BY)
        return responder.single(request, responder.follow(href, Incident), if_modified_since)

    # Registered last so the /status/facility/<collection> aliases match first.
    @router.get("/status/facility/{facility_id}")
    def get_facility_by_id(
        facility_id: str,
        request: Request,
        include: list[str] | None = Query(None),
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(facility_id, Facility), if_modified_since, include)

    return router


def account_router(responder: Responder) -> APIRouter:
    """Routes under /api/v1/account."""
    router = APIRouter(prefix=ACCOUNT_PREFIX)
    repository = responder.repository

    @router.get("")
    def get_account_discovery(request: Request) -> Any:
        return _discovery(request, responder.transform, ACCOUNT_PREFIX, ACCOUNT_ENDPOINTS)

    @router.get("/capabilities")
    def get_capabilities(
        request: Request,
        name: str | None = None,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.collection(
            request,
            repository.find_all_of_type(Capability),
            if_modified_since,
            lambda items: filter_named(items, name),
        )

    @router.get("/capabilities/{capability_id}")
    def get_capability(
        capability_id: str,
        request: Request,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(capability_id, Capability), if_modified_since)

    @router.get("/projects")
    def get_projects(
        request: Request,
        name: str | None = None,
        user_id: str | None = None,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.collection(
            request,
            repository.find_all_of_type(Project),
            if_modified_since,
            lambda items: filter_projects(items, name, user_id),
        )

    @router.get("/projects/{project_id}")
    def get_project(
        project_id: str,
        request: Request,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(project_id, Project), if_modified_since)

    @router.get("/project_allocations")
    def get_project_allocations(
        request: Request,
        name: str | None = None,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.collection(
            request,
            repository.find_all_of_type(ProjectAllocation),
            if_modified_since,
            lambda items: filter_named(items, name),
        )

    @router.get("/project_allocations/{allocation_id}")
    def get_project_allocation(
        allocation_id: str,
        request: Request,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(allocation_id, ProjectAllocation), if_modified_since)

    @router.get("/user_allocations")
    def get_user_allocations(
        request: Request,
        name: str | None = None,
        user_id: str | None = None,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.collection(
            request,
            repository.find_all_of_type(UserAllocation),
            if_modified_since,
            lambda items: filter_user_allocations(items, name, user_id),
        )

    @router.get("/user_allocations/{allocation_id}")
    def get_user_allocation(
        allocation_id: str,
        request: Request,
        if_modified_since: str | None = Header(None),
    ) -> Response:
        return responder.single(request, responder.lookup(allocation_id, UserAllocation), if_modified_since)

    return router


def register_error_handlers(app: FastAPI) -> None:
    """Map exceptions to structured error bodies."""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        logger.info("Not found", path=request.url.path)
        return JSONResponse(not_found_error(str(request.url)), status_code=404)

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument_handler(request: Request, exc: InvalidArgumentError) -> JSONResponse:
        logger.info("Invalid request", path=request.url.path, error=str(exc))
        return JSONResponse(bad_request_error(str(request.url), str(exc)), status_code=400)

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Invalid request", path=request.url.path, error=str(exc))
        return JSONResponse(bad_request_error(str(request.url), str(exc)), status_code=400)

    @app.exception_handler(FacilityStatusError)
    async def facility_status_error_handler(request: Request, exc: FacilityStatusError) -> JSONResponse:
        logger.exception("Request failed", path=request.url.path)
        return JSONResponse(internal_server_error(str(request.url), exc), status_code=500)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(internal_server_error(str(request.url), exc), status_code=500)


def create_app(repository: Repository, transform: UrlTransform | None = None) -> FastAPI:
    """Build the API application around an already populated repository."""
    transform = transform or UrlTransform()
    responder = Responder(repository, transform)

    app = FastAPI(title="Facility Status API", version="1.0.0")
    app.state.repository = repository
    app.state.transform = transform
    register_error_handlers(app)
    app.include_router(status_router(responder))
    app.include_router(account_router(responder))

    @app.get("/api/{path:path}", include_in_schema=False)
    def fallback(path: str, request: Request) -> JSONResponse:
        logger.info("No handler", path=request.url.path)
        return JSONResponse(
            error_body(
                NotFoundError.status,
                f"No handler for {request.url.path}",
                str(request.url),
            ),
            status_code=404,
        )

    logger.debug("Application created", entities=repository.count(), transform=repr(transform))
    return app
