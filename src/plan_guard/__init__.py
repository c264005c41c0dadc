"""Security baseline validation for Terraform change plans."""

__version__ = "0.1.0"
