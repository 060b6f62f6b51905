"""Jewellery retail schema with a constraint-enforcing CRUD API."""
from .app import create_app

__all__ = ['create_app']
