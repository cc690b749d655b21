"""Gaussian mixture models: clusters are the interpreted components."""
