import json
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from typing import Dict, Iterator, List
from urllib.parse import urlparse

import osmium
import requests
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_fixed

from osm_pbf2json.entities import (
    NODE,
    RELATION,
    WAY,
    Entity,
    EntityStore,
    Member,
    Node,
    Relation,
    Way,
    json_to_store,
)
from osm_pbf2json.exceptions import SourceNotFound, SourceUnavailable
from osm_pbf2json.geo import Location

logger = logging.getLogger(__name__)

# pyosmium member type codes
MEMBER_TYPES = {"n": NODE, "w": WAY, "r": RELATION}

CHUNK_SIZE = 1 << 20


def is_remote(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def download(uri: str, destination: str, timeout: int = 60) -> str:
    """Stream a remote extract (e.g. from Geofabrik) to a local file.

    Args:
        uri: http(s) location of the extract
        destination: local file path to write to
        timeout: connect/read timeout, in seconds

    Returns
        destination : the path written to
    """
    with requests.get(uri, stream=True, timeout=timeout) as response:
        if response.status_code == 404:
            raise SourceNotFound(uri)
        elif response.status_code >= 500:
            raise SourceUnavailable(f"{uri} answered {response.status_code}")
        response.raise_for_status()

        with open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                f.write(chunk)

    return destination


def retry_info(retry_state):
    logger.info(
        f"Download attempt #{retry_state.attempt_number} ended with: {retry_state.outcome}"
    )


@retry(
    retry=retry_if_not_exception_type(SourceNotFound),
    stop=stop_after_attempt(5),
    wait=wait_fixed(10),
    before_sleep=retry_info,
    reraise=True,
)
def download_with_retry(uri: str, destination: str) -> str:
    """
    Wrapper for `download()` that attempts retries

    Args:
        uri: http(s) location of the extract
        destination: local file path to write to

    Returns:
        destination : the path written to
    """
    return download(uri, destination)


@contextmanager
def local_source(source: str) -> Iterator[str]:
    """
    Yield a local path for a source given as path or http(s) URI.
        Remote sources are downloaded to a temporary directory which is
        removed again on exit.
    """
    if not is_remote(source):
        if not os.path.exists(source):
            raise SourceNotFound(source)
        yield source
        return

    directory = tempfile.mkdtemp(prefix="osm-pbf2json-")
    try:
        filename = os.path.basename(urlparse(source).path) or "extract.osm.pbf"
        logger.info(f"Downloading {source}")
        yield download_with_retry(source, os.path.join(directory, filename))
    finally:
        shutil.rmtree(directory, ignore_errors=True)


class EntityCollector(osmium.SimpleHandler):
    """Copies every node, way and relation of a file into plain entities."""

    def __init__(self):
        super().__init__()
        self.entities: List[Entity] = []

    def node(self, n):
        # osmium objects are only valid inside the callback, copy what we need
        if not n.location.valid():
            logger.debug(f"node/{n.id} has no valid location, skipped")
            return
        self.entities.append(
            Node(
                id=n.id,
                location=Location(lat=n.location.lat, lon=n.location.lon),
                tags={t.k: t.v for t in n.tags},
            )
        )

    def way(self, w):
        self.entities.append(
            Way(
                id=w.id,
                nodes=tuple(nr.ref for nr in w.nodes),
                tags={t.k: t.v for t in w.tags},
            )
        )

    def relation(self, r):
        members = tuple(
            Member(type=MEMBER_TYPES[m.type], ref=m.ref, role=m.role)
            for m in r.members
            if m.type in MEMBER_TYPES
        )
        self.entities.append(
            Relation(id=r.id, members=members, tags={t.k: t.v for t in r.tags})
        )


def read_osm(path: str) -> EntityStore:
    """
    Read an OSM file (.osm.pbf, .osm, .osm.bz2, ...) into an EntityStore.

    Args:
        path: local file path, format is derived from the extension

    Returns:
        store: EntityStore holding the file's entities in file order
    """
    collector = EntityCollector()
    collector.apply_file(path, locations=False)
    logger.info(f"{len(collector.entities)} entities read from {path}")
    return EntityStore(collector.entities)


def read_json(path: str) -> EntityStore:
    with open(path, "r", encoding="utf-8") as f:
        data: Dict = json.load(f)
    return json_to_store(data)


def load(source: str) -> EntityStore:
    """
    Load a source given as local path or http(s) URI.
        Files ending in .json are read as Overpass style JSON, anything else
        is handed to osmium.

    Args:
        source: path or URI of the extract

    Returns:
        store: EntityStore of the source's entities
    """
    with local_source(source) as path:
        if path.endswith(".json"):
            return read_json(path)
        return read_osm(path)
