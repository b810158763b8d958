"""Command-line tools for the difficulty-adjustment estimator."""
