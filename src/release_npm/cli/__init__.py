"""Command line interface for release-npm."""
