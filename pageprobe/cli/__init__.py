"""Command-line interface for pageprobe."""
