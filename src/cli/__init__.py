"""Command line interface for the quiz assessment engine."""
