"""Unit tests for json lines and geojson writers."""

import io
import json

from osm_pbf2json.items import extract_boundaries, extract_objects, extract_streets
from osm_pbf2json.output import to_geodataframe, write_geojson, write_json_lines


def geometry_types(collection):
    return {
        feature["properties"].get("osmid"): feature["geometry"]["type"]
        for feature in collection["features"]
    }


class TestJsonLines:
    def test_one_record_per_line(self, district_store):
        stream = io.StringIO()
        count = write_json_lines(extract_objects(district_store), stream)

        lines = stream.getvalue().splitlines()
        assert count == len(lines) == 7
        records = [json.loads(line) for line in lines]
        assert {r["type"] for r in records} == {"node", "way", "relation"}

    def test_point_record(self, district_store):
        stream = io.StringIO()
        objects = extract_objects(district_store, entities=[district_store.node(30)])
        write_json_lines(objects, stream)
        record = json.loads(stream.getvalue())
        assert record == {
            "id": 30,
            "type": "node",
            "tags": {
                "addr:street": "Main Street",
                "addr:housenumber": "5",
                "addr:city": "Springfield",
            },
            "lat": 0.6,
            "lon": 0.5,
        }

    def test_streets_with_coordinates(self, district_store):
        stream = io.StringIO()
        write_json_lines(extract_streets(district_store), stream, retain_coordinates=True)
        record = json.loads(stream.getvalue())
        assert record["name"] == "Main Street"
        assert "coordinates" in record


class TestGeoJson:
    def test_retained_geometries(self, district_store):
        stream = io.StringIO()
        count = write_geojson(extract_objects(district_store, retain_coordinates=True), stream)

        collection = json.loads(stream.getvalue())
        assert collection["type"] == "FeatureCollection"
        assert count == len(collection["features"]) == 7
        assert geometry_types(collection) == {
            30: "Point",
            50: "LineString",
            51: "LineString",
            52: "LineString",
            53: "LineString",
            60: "Polygon",
            61: "Polygon",
        }

    def test_centroids_without_retained_geometries(self, district_store):
        stream = io.StringIO()
        write_geojson(extract_objects(district_store), stream)
        collection = json.loads(stream.getvalue())
        assert set(geometry_types(collection).values()) == {"Point"}

    def test_tags_are_unnested_and_missing_ones_dropped(self, district_store):
        entities = [district_store.node(30), district_store.way(50)]
        gdf = to_geodataframe(extract_objects(district_store, entities=entities))
        assert gdf.crs.to_epsg() == 4326
        assert len(gdf) == 2

        stream = io.StringIO()
        write_geojson(extract_objects(district_store, entities=[district_store.node(30)]), stream)
        properties = json.loads(stream.getvalue())["features"][0]["properties"]
        assert properties["addr:city"] == "Springfield"
        assert properties["element_type"] == "node"
        assert "highway" not in properties

    def test_boundaries_and_streets(self, district_store):
        stream = io.StringIO()
        write_geojson(extract_boundaries(district_store), stream)
        collection = json.loads(stream.getvalue())
        assert [f["geometry"]["type"] for f in collection["features"]] == ["Polygon", "Polygon"]
        assert collection["features"][0]["properties"]["name"] == "West"

        stream = io.StringIO()
        write_geojson(extract_streets(district_store), stream)
        feature = json.loads(stream.getvalue())["features"][0]
        assert feature["geometry"]["type"] == "MultiLineString"
        assert feature["properties"]["name"] == "Main Street"

    def test_empty_collection(self):
        stream = io.StringIO()
        assert write_geojson([], stream) == 0
        assert json.loads(stream.getvalue())["features"] == []
