"""HTTP API for the harvester."""
