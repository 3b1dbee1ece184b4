import sys

from osm_pbf2json.cli import main

sys.exit(main())
