"""Operator command-line tools for ECC provisioning."""
