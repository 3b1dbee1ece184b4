""" Tag tables used to classify entities

Note: AREA_FEATURES is based on the JSON linked to from the following page:
    https://wiki.openstreetmap.org/wiki/Overpass_turbo/Polygon_Features
"""

# "all": any value makes a closed way an area
# "passlist": only the listed values do
# "blocklist": every value except the listed ones does
AREA_FEATURES = {
    "building": {"polygon": "all"},
    "highway": {
        "polygon": "passlist",
        "values": ["services", "rest_area", "escape", "elevator"],
    },
    "natural": {
        "polygon": "blocklist",
        "values": ["coastline", "cliff", "ridge", "arete", "tree_row"],
    },
    "landuse": {"polygon": "all"},
    "waterway": {
        "polygon": "passlist",
        "values": ["riverbank", "dock", "boatyard", "dam"],
    },
    "amenity": {"polygon": "all"},
    "leisure": {"polygon": "all"},
    "barrier": {
        "polygon": "passlist",
        "values": ["city_wall", "ditch", "hedge", "retaining_wall", "spikes"],
    },
    "railway": {
        "polygon": "passlist",
        "values": ["station", "turntable", "roundhouse", "platform"],
    },
    "area": {"polygon": "all"},
    "boundary": {"polygon": "all"},
    "man_made": {
        "polygon": "blocklist",
        "values": ["cutline", "embankment", "pipeline"],
    },
    "power": {
        "polygon": "passlist",
        "values": ["plant", "substation", "generator", "transformer"],
    },
    "place": {"polygon": "all"},
    "shop": {"polygon": "all"},
    "aeroway": {"polygon": "blocklist", "values": ["taxiway"]},
    "tourism": {"polygon": "all"},
    "historic": {"polygon": "all"},
    "public_transport": {"polygon": "all"},
    "office": {"polygon": "all"},
    "building:part": {"polygon": "all"},
    "military": {"polygon": "all"},
    "ruins": {"polygon": "all"},
    "area:highway": {"polygon": "all"},
    "craft": {"polygon": "all"},
    "golf": {"polygon": "all"},
    "indoor": {"polygon": "all"},
}


""" Address extraction and search index defaults """

# every tag whose key starts with this prefix is an address part
# (see https://wiki.openstreetmap.org/wiki/Key:addr:*)
ADDRESS_PREFIX = "addr"

SEARCHABLE_ATTRIBUTES = ["street", "houseNumber", "postcode", "city", "country"]

# _geo is required for geofencing queries against the index
FILTERABLE_ATTRIBUTES = ["_geo"]


""" Street and boundary selection """

# highway values that carry vehicle or pedestrian traffic along a named street
STREET_HIGHWAY_VALUES = {
    "motorway",
    "trunk",
    "primary",
    "secondary",
    "tertiary",
    "unclassified",
    "residential",
    "motorway_link",
    "trunk_link",
    "primary_link",
    "secondary_link",
    "tertiary_link",
    "living_street",
    "service",
    "pedestrian",
    "track",
    "road",
    "footway",
    "cycleway",
    "path",
}

ADMINISTRATIVE_BOUNDARY = "administrative"
