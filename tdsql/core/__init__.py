"""Console core: engine clients, execution, cancellation, output and completion."""

__all__ = []
