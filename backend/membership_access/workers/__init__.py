"""Background workers for the entitlement engine."""
