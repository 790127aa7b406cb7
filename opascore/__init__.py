"""Posture risk scoring for Kubernetes controls, Rego dependency data and built-in Rego modules."""

__version__ = "0.1.0"