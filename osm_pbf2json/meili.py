import logging
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from itertools import islice
from typing import Dict, Iterable, Iterator, List, Optional

import requests
from tenacity import RetryError, Retrying, retry_if_result, stop_after_attempt, stop_never, wait_fixed

from osm_pbf2json.exceptions import (
    IndexAuthenticationError,
    IndexRequestFailed,
    IndexTaskTimeout,
)
from osm_pbf2json.items import GeoObject, PointObject, address_parts
from osm_pbf2json.lookups import ADDRESS_PREFIX, FILTERABLE_ATTRIBUTES, SEARCHABLE_ATTRIBUTES

# Upload of address documents to a Meilisearch index.
#
# Documents are sent in chunks with a bounded number of requests in flight.
#   Index writes are idempotent upserts keyed by id, so chunk order does not
#   matter. Index settings are only applied once every chunk went through and
#   the index reports no pending tasks.

logger = logging.getLogger(__name__)


class MeiliClient:
    """Minimal client for the Meilisearch HTTP API."""

    def __init__(self, uri: str, api_key: Optional[str] = None, timeout: int = 30):
        self.uri = uri.rstrip("/")
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

    def request(self, method: str, path: str, **kwargs) -> Dict:
        """Send a request to the index.

        Args:
            method: HTTP method
            path: API path, starting with "/"

        Returns
            response : JSON response as a dictionary
        """
        response = requests.request(
            method,
            f"{self.uri}{path}",
            headers=self.headers,
            timeout=self.timeout,
            **kwargs,
        )

        if response.status_code in (401, 403):
            raise IndexAuthenticationError(f"{method} {path}: {response.status_code}")
        elif response.status_code >= 400:
            raise IndexRequestFailed(
                f"{method} {path}: {response.status_code} {response.text}"
            )

        return response.json() if response.content else {}

    def add_or_replace(self, index: str, documents: List[Dict]) -> Dict:
        return self.request(
            "POST",
            f"/indexes/{index}/documents",
            params={"primaryKey": "id"},
            json=documents,
        )

    def has_pending_tasks(self) -> bool:
        """
        Check whether the index still has enqueued or processing tasks.
            A failing status query ends the wait, as there is nothing left to
            poll against.
        """
        try:
            tasks = self.request(
                "GET", "/tasks", params={"statuses": "enqueued,processing", "limit": 1}
            )
        except (requests.RequestException, IndexRequestFailed) as e:
            logger.warning(f"Could not query pending tasks: {e}")
            return False
        return bool(tasks.get("results"))

    def set_searchable_attributes(self, index: str, attributes: List[str]) -> Dict:
        return self.request(
            "PUT", f"/indexes/{index}/settings/searchable-attributes", json=attributes
        )

    def set_filterable_attributes(self, index: str, attributes: List[str]) -> Dict:
        return self.request(
            "PUT", f"/indexes/{index}/settings/filterable-attributes", json=attributes
        )


def to_document(obj: GeoObject, address_prefix: str = ADDRESS_PREFIX) -> Optional[Dict]:
    """
    Build an index document from an extracted object.
        Only nodes carrying at least one address tag become documents.

    Args:
        obj: extracted point or shape object
        address_prefix: keys starting with this prefix are address tags

    Returns:
        document: flattened address attributes plus id, _geo and type; None
            if the object has no address
    """
    if not isinstance(obj, PointObject):
        return None

    document = address_parts(obj.tags, address_prefix)
    if not document:
        return None

    document["id"] = obj.id
    document["_geo"] = obj.location.to_dict()
    document["type"] = obj.osm_type
    return document


def to_documents(
    objects: Iterable[GeoObject], address_prefix: str = ADDRESS_PREFIX
) -> Iterator[Dict]:
    for obj in objects:
        document = to_document(obj, address_prefix)
        if document is not None:
            yield document


def chunked(items: Iterable, size: int) -> Iterator[List]:
    iterator = iter(items)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


@dataclass
class UploadResult:
    succeeded: int = 0
    failed: int = 0
    documents: int = 0

    @property
    def successful(self) -> bool:
        return self.failed == 0


def upload(
    client: MeiliClient,
    index: str,
    documents: Iterable[Dict],
    chunk_size: int = 1000,
    parallel_requests: int = 10,
) -> UploadResult:
    """
    Upload documents in chunks with a bounded number of concurrent requests.
        A failing chunk is logged and counted, the remaining chunks are still
        sent.

    Args:
        client: index client
        index: name of the index
        documents: documents to upload
        chunk_size: number of documents per request
        parallel_requests: maximum number of requests in flight

    Returns:
        result: counts of succeeded and failed chunks
    """
    result = UploadResult()
    chunks = chunked(documents, chunk_size)

    with ThreadPoolExecutor(max_workers=parallel_requests) as executor:
        in_flight = {}

        def collect(done):
            for future in done:
                size = in_flight.pop(future)
                try:
                    future.result()
                except (
                    requests.RequestException,
                    IndexAuthenticationError,
                    IndexRequestFailed,
                ) as e:
                    logger.error(f"Failed to push {size} documents to index {index}: {e}")
                    result.failed += 1
                else:
                    result.succeeded += 1
                    result.documents += size

        for chunk in chunks:
            # only pull the next chunk once a request slot is free
            if len(in_flight) >= parallel_requests:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                collect(done)
            future = executor.submit(client.add_or_replace, index, chunk)
            in_flight[future] = len(chunk)

        done, _ = wait(in_flight)
        collect(done)

    logger.info(
        f"{result.documents} documents uploaded in {result.succeeded} chunks, "
        f"{result.failed} chunks failed"
    )
    return result


def poll_info(retry_state):
    logger.info(
        f"Index still has pending tasks after poll #{retry_state.attempt_number}, waiting"
    )


def wait_for_tasks(
    client: MeiliClient, interval: float = 5.0, max_attempts: Optional[int] = None
) -> None:
    """
    Block until the index reports no pending tasks.

    Args:
        client: index client
        interval: seconds between polls
        max_attempts: maximum number of polls, None waits indefinitely

    Raises:
        IndexTaskTimeout: if tasks are still pending after max_attempts polls
    """
    stop = stop_never if max_attempts is None else stop_after_attempt(max_attempts)
    retrying = Retrying(
        retry=retry_if_result(lambda pending: pending),
        stop=stop,
        wait=wait_fixed(interval),
        before_sleep=poll_info,
    )
    try:
        retrying(client.has_pending_tasks)
    except RetryError:
        raise IndexTaskTimeout(f"Tasks still pending after {max_attempts} polls")


def finalize(
    client: MeiliClient,
    index: str,
    searchable_attributes: Optional[List[str]] = None,
    filterable_attributes: Optional[List[str]] = None,
) -> None:
    """Configure searchable and filterable attributes of the index."""
    # ids are excluded from search, they mess up house numbers
    client.set_searchable_attributes(index, searchable_attributes or SEARCHABLE_ATTRIBUTES)
    # geography objects are needed for geofencing
    client.set_filterable_attributes(index, filterable_attributes or FILTERABLE_ATTRIBUTES)
    logger.info(f"Index {index} settings applied")


def import_objects(
    client: MeiliClient,
    objects: Iterable[GeoObject],
    index: str = "addresses",
    searchable_attributes: Optional[List[str]] = None,
    chunk_size: int = 1000,
    parallel_requests: int = 10,
    poll_interval: float = 5.0,
    poll_max_attempts: Optional[int] = None,
    address_prefix: str = ADDRESS_PREFIX,
) -> UploadResult:
    """
    Upload the address documents of extracted objects and configure the index.
        Settings can only be applied after data has been imported. They are
        skipped entirely if any chunk failed to upload.

    Args:
        client: index client
        objects: extracted objects
        index: name of the index
        searchable_attributes: attributes the index searches in
        chunk_size: number of documents per request
        parallel_requests: maximum number of requests in flight
        poll_interval: seconds between pending task polls
        poll_max_attempts: maximum number of polls, None waits indefinitely
        address_prefix: keys starting with this prefix are address tags

    Returns:
        result: upload counts; result.successful tells whether settings were applied
    """
    logger.info(f"Starting import into index {index}")
    result = upload(
        client,
        index,
        to_documents(objects, address_prefix),
        chunk_size=chunk_size,
        parallel_requests=parallel_requests,
    )

    if not result.successful:
        logger.warning(
            f"{result.failed} chunks failed, index settings for {index} were not applied"
        )
        return result

    wait_for_tasks(client, interval=poll_interval, max_attempts=poll_max_attempts)
    finalize(client, index, searchable_attributes=searchable_attributes)
    return result
