"""
Command line interface

    osm-pbf2json objects -s berlin.osm.pbf -t "amenity~fountain+tourism,amenity~townhall"
    osm-pbf2json streets -s berlin.osm.pbf --boundary-level 10 --retain-coordinates
    osm-pbf2json boundaries -s berlin.osm.pbf --admin-levels 9,10 -f geojson
    osm-pbf2json import -s https://download.geofabrik.de/europe/andorra-latest.osm.pbf --meili-key ...
"""

import argparse
import logging
import sys
from contextlib import contextmanager
from typing import IO, Iterator, List, Optional

from osm_pbf2json import __version__
from osm_pbf2json.exceptions import (
    IndexAuthenticationError,
    IndexRequestFailed,
    IndexTaskTimeout,
    SourceNotFound,
    SourceUnavailable,
)
from osm_pbf2json.entities import Node
from osm_pbf2json.filter import parse
from osm_pbf2json.items import extract_boundaries, extract_objects, extract_streets
from osm_pbf2json.lookups import ADDRESS_PREFIX
from osm_pbf2json.meili import MeiliClient, import_objects
from osm_pbf2json.output import write_geojson, write_json_lines
from osm_pbf2json.reader import load
from osm_pbf2json.settings import Settings, env, log_level, parse_levels, split_list

logger = logging.getLogger(__name__)

FATAL_ERRORS = (
    SourceNotFound,
    SourceUnavailable,
    IndexAuthenticationError,
    IndexRequestFailed,
    IndexTaskTimeout,
)


def _common_arguments(parser: argparse.ArgumentParser, default_tags: Optional[str]):
    source = env("source")
    parser.add_argument(
        "-s",
        "--source",
        default=source,
        required=source is None,
        help="the source of the extract, a local file or uri (e.g. Geofabrik)",
    )
    parser.add_argument(
        "-t",
        "--tags",
        default=env("tags", default_tags),
        help="tags to filter on, e.g. 'amenity~fountain+tourism,amenity~townhall'",
    )
    parser.add_argument(
        "-l", "--log-level", default=env("log_level", "I"), help="E, W, I, D or T"
    )


def _output_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("-o", "--output", default=env("output"), help="output file, default stdout")
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "geojson"],
        default=env("format", "json"),
        help="newline delimited json records or a geojson feature collection",
    )
    parser.add_argument(
        "--retain-coordinates",
        action="store_true",
        help="keep full geometries instead of centroid and bounds only",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="osm-pbf2json",
        description="Extract geometries from OSM extracts and import addresses into a search index",
    )
    parser.add_argument("--version", action="version", version=__version__)
    subparsers = parser.add_subparsers(dest="command", required=True)

    objects = subparsers.add_parser("objects", help="filter and export tagged objects")
    _common_arguments(objects, default_tags="addr")
    _output_arguments(objects)

    streets = subparsers.add_parser("streets", help="export named streets")
    _common_arguments(streets, default_tags=None)
    _output_arguments(streets)
    streets.add_argument(
        "--boundary-level",
        type=int,
        default=env("boundary_level"),
        help="group streets by the administrative boundaries of this level",
    )

    boundaries = subparsers.add_parser("boundaries", help="export administrative boundaries")
    _common_arguments(boundaries, default_tags=None)
    _output_arguments(boundaries)
    boundaries.add_argument(
        "--admin-levels",
        type=parse_levels,
        default=env("admin_levels"),
        help="comma separated admin levels to keep, default all",
    )

    meili = subparsers.add_parser("import", help="import addresses into meilisearch")
    _common_arguments(meili, default_tags="addr")
    meili_key = env("meili_key")
    meili.add_argument(
        "--meili-key",
        default=meili_key,
        required=meili_key is None,
        help="the API key for your meilisearch instance",
    )
    meili.add_argument("--meili-uri", default=env("meili_uri", "http://localhost:7700"))
    meili.add_argument(
        "--meili-node-index-name", default=env("meili_node_index_name", "addresses")
    )
    meili.add_argument(
        "--meili-node-searchable-values",
        type=split_list,
        default=env("meili_node_searchable_values", "street,houseNumber,postcode,city,country"),
    )
    meili.add_argument("--import-chunk-size", type=int, default=env("import_chunk_size", "1000"))
    meili.add_argument(
        "--import-parallel-requests", type=int, default=env("import_parallel_requests", "10")
    )
    meili.add_argument("--poll-interval", type=float, default=env("poll_interval", "5"))
    meili.add_argument(
        "--poll-max-attempts",
        type=int,
        default=env("poll_max_attempts"),
        help="stop waiting for pending index tasks after this many polls, default never",
    )
    meili.add_argument(
        "--address-prefix",
        default=env("address_prefix", ADDRESS_PREFIX),
        help="tags starting with this prefix are sent as address attributes",
    )

    return parser


def to_settings(args: argparse.Namespace) -> Settings:
    # string defaults taken from the environment are converted by argparse `type`
    options = dict(
        source=args.source,
        tags=parse(args.tags) if args.tags else None,
        output=getattr(args, "output", None),
        format=getattr(args, "format", "json"),
        retain_coordinates=getattr(args, "retain_coordinates", False),
        boundary_level=getattr(args, "boundary_level", None),
        admin_levels=getattr(args, "admin_levels", None),
        log_level=log_level(args.log_level),
    )
    if args.command == "import":
        options.update(
            meili_uri=args.meili_uri,
            meili_key=args.meili_key,
            meili_node_index_name=args.meili_node_index_name,
            meili_node_searchable_values=args.meili_node_searchable_values,
            import_chunk_size=args.import_chunk_size,
            import_parallel_requests=args.import_parallel_requests,
            poll_interval=args.poll_interval,
            poll_max_attempts=args.poll_max_attempts,
            address_prefix=args.address_prefix,
        )
    return Settings(**options)


@contextmanager
def open_output(path: Optional[str]) -> Iterator[IO[str]]:
    if path is None:
        yield sys.stdout
        return
    with open(path, "w", encoding="utf-8") as f:
        yield f


def write(objects, settings: Settings) -> int:
    with open_output(settings.output) as stream:
        if settings.format == "geojson":
            return write_geojson(objects, stream)
        return write_json_lines(objects, stream, retain_coordinates=settings.retain_coordinates)


def run(command: str, settings: Settings) -> int:
    store = load(settings.source)

    if command == "objects":
        objects = extract_objects(
            store, settings.tags, retain_coordinates=settings.retain_coordinates
        )
        write(objects, settings)

    elif command == "boundaries":
        write(extract_boundaries(store, settings.admin_levels, settings.tags), settings)

    elif command == "streets":
        boundaries = None
        if settings.boundary_level is not None:
            boundaries = extract_boundaries(store, [settings.boundary_level])
        write(extract_streets(store, boundaries, settings.tags), settings)

    elif command == "import":
        client = MeiliClient(settings.meili_uri, settings.meili_key)
        result = import_objects(
            client,
            # only nodes become documents
            extract_objects(
                store, settings.tags, entities=(e for e in store if isinstance(e, Node))
            ),
            index=settings.meili_node_index_name,
            searchable_attributes=settings.meili_node_searchable_values,
            chunk_size=settings.import_chunk_size,
            parallel_requests=settings.import_parallel_requests,
            poll_interval=settings.poll_interval,
            poll_max_attempts=settings.poll_max_attempts,
            address_prefix=settings.address_prefix,
        )
        # partial uploads leave the index unconfigured
        if not result.successful:
            return 1

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = to_settings(args)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return run(args.command, settings)
    except FATAL_ERRORS as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
