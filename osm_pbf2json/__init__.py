import importlib.metadata

from osm_pbf2json.filter import matches, parse
from osm_pbf2json.items import extract_boundaries, extract_objects, extract_streets
from osm_pbf2json.resolve import resolve

# import package version from root 'pyproject.toml' file
__version__ = importlib.metadata.version("osm-pbf2json")
