"""CLI for the facility status server."""

import json
import os
from pathlib import Path
from typing import Annotated, Literal

import structlog
import uvicorn
from cyclopts import App, Parameter

from facility_status.backend import Repository
from facility_status.backends import MemoryRepository
from facility_status.config import CONFIG_ENV_VAR, get_config
from facility_status.config_commands import config_app
from facility_status.link_commands import link_app
from facility_status.loader import SOURCE_TYPES, load_config, populate
from facility_status.server import create_app
from facility_status.url_transform import UrlTransform

logger = structlog.get_logger()

app = App(
    name="facility-status",
    help="Facility Status - A read-only facility status API server",
)

app.command(link_app)
app.command(config_app)

# Level given on the command line, which takes precedence over logging.level.
_log_level: str | None = None


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_repository() -> Repository:
    """Load the configured data sources into a fresh repository."""
    config = get_config()
    sources = config.data_sources()
    if not sources:
        raise ValueError(
            f"No data sources configured in {config.config_file}. Set them using:\n"
            "  facility-status config set data.facility <path>\n"
            "  facility-status config set data.resources <path>"
        )
    return populate(MemoryRepository(), load_config(config))


def get_transform() -> UrlTransform:
    """Get the URL transform for the configured proxy, if any."""
    return UrlTransform(get_config().proxy)


@app.command
def serve(host: str | None = None, port: int | None = None) -> None:
    """Run the HTTP server."""
    config = get_config()
    log_level = _log_level or config.log_level
    configure_logging(log_level)
    api = create_app(get_repository(), get_transform())
    host = host or config.host
    port = port or config.port
    logger.info("Starting server", host=host, port=port, root=config.root)
    uvicorn.run(api, host=host, port=port, log_level=log_level)


@app.command
def show(entity_id: str) -> None:
    """Show an entity by ID as JSON."""
    repository = get_repository()
    entity = repository.get_by_id(entity_id)
    if entity is None:
        print(f"Entity {entity_id} not found")
        return

    entity.transform_uris(get_transform())
    print(json.dumps(entity.to_dict(), indent=2))


@app.command
def list(
    kind: Literal[
        "facility",
        "sites",
        "locations",
        "resources",
        "incidents",
        "events",
        "capabilities",
        "projects",
        "project_allocations",
        "user_allocations",
    ] = "resources",
) -> None:
    """List the entities of one kind."""
    repository = get_repository()
    entities = repository.find_all_of_type(SOURCE_TYPES[kind])

    print(f"Found {len(entities)} {kind}:\n")
    for entity in entities:
        short_name = f" ({entity.short_name})" if entity.short_name else ""
        print(f"{entity.id}: {entity.name}{short_name}")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] | None = None,
    config: Path | None = None,
) -> None:
    """Main entry point with global options.

    Without --log-level, commands log at critical only, except serve which uses
    logging.level from the config file.
    """
    global _log_level
    _log_level = log_level
    configure_logging(log_level or "critical")
    if config is not None:
        os.environ[CONFIG_ENV_VAR] = str(config)
    app(tokens)


if __name__ == "__main__":
    app.meta()
