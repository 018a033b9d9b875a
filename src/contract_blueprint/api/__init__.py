"""HTTP API for the Contract Blueprint pipeline."""
