"""REST API for the quiz assessment engine."""
