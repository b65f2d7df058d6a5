"""Terraform state migration: refactor tfstate in temporary copies and verify with terraform plan."""

__version__ = "0.1.0"