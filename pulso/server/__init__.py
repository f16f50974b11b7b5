"""HTTP API for survey distributions."""
