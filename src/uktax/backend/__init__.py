"""Backend services for the UK tax estimator."""
