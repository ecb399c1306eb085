"""UK in-year income tax estimator."""
