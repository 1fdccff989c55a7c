"""Cross-cutting infrastructure: configuration, logging, exceptions, wiring."""
