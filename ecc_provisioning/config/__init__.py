"""Configuration module for the ECC provisioning client."""
from .settings import EccSettings, load_settings

__all__ = ["EccSettings", "load_settings"]
