"""In-memory device tree model, property values with markers, and tree checks."""

__version__ = "0.1.0"

__all__ = ["checkbase", "checker", "data", "providers", "semantic", "structural", "tree"]