"""Service layer: access-control engine plus hierarchy, membership, task and analytics services."""
