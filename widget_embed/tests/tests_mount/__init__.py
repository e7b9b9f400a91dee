"""View mount coordinator tests: placeholders, anchors, idempotence."""
