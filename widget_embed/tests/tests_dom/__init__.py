"""Document tree tests: parsing, selectors, mutation, serialization."""
