"""
Data Generation Module
"""
from .generators import TenantDataGenerator, seed_store

__all__ = [
    "TenantDataGenerator",
    "seed_store",
]
