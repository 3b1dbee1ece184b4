"""
Run settings

Every option can be given on the command line or through an environment
variable of the same name in upper case (e.g. --meili-uri / MEILI_URI).
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .filter import Group, parse
from .lookups import ADDRESS_PREFIX, SEARCHABLE_ATTRIBUTES

# single letter levels as accepted by --log-level, T(race) has no stdlib level
LOG_LEVELS = {
    "E": logging.ERROR,
    "W": logging.WARNING,
    "I": logging.INFO,
    "D": logging.DEBUG,
    "T": logging.DEBUG,
}


def env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name.upper(), default)


def split_list(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def parse_levels(value: str) -> List[int]:
    return [int(v) for v in split_list(value)]


def log_level(value: str) -> int:
    """Map "I", "info", "INFO", ... to a logging level."""
    key = value.strip().upper()
    if key in LOG_LEVELS:
        return LOG_LEVELS[key]
    level = logging.getLevelName(key)
    if isinstance(level, int):
        return level
    raise ValueError(f"Unknown log level {value!r}")


@dataclass
class Settings:
    source: str
    tags: Optional[List[Group]] = field(default_factory=lambda: parse("addr"))
    output: Optional[str] = None
    format: str = "json"
    retain_coordinates: bool = False

    # streets and boundaries
    boundary_level: Optional[int] = None
    admin_levels: Optional[List[int]] = None

    # search index import
    meili_uri: str = "http://localhost:7700"
    meili_key: Optional[str] = None
    meili_node_index_name: str = "addresses"
    meili_node_searchable_values: List[str] = field(
        default_factory=lambda: list(SEARCHABLE_ATTRIBUTES)
    )
    import_chunk_size: int = 1000
    import_parallel_requests: int = 10
    poll_interval: float = 5.0
    poll_max_attempts: Optional[int] = None
    address_prefix: str = ADDRESS_PREFIX

    log_level: int = logging.INFO

    def __post_init__(self):
        if self.format not in ("json", "geojson"):
            raise ValueError(f"Unknown output format {self.format!r}")
        if self.import_chunk_size < 1:
            raise ValueError("import_chunk_size must be at least 1")
        if self.import_parallel_requests < 1:
            raise ValueError("import_parallel_requests must be at least 1")
