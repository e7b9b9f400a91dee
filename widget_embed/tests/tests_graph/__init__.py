"""Model graph builder tests: construction, references, per-id failures."""
