"""Concrete implementations of the pharmaroute interfaces."""
