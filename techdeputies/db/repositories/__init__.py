"""Repository layer: thin query/persistence helpers grouped by resource."""
