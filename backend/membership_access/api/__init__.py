"""HTTP API for the entitlement engine."""
