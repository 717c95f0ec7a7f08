"""Data binding: JSON introspection, path resolution and API probing."""
