"""Service layer: one module per operator capability."""
