"""Command line interface for botfleet."""
