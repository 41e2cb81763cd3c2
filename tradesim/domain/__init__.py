"""Domain layer: models and stateful services."""
