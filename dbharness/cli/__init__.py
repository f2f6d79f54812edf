"""Command line interface for dbharness."""
