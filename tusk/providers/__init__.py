"""Concrete adapters behind the interfaces in :mod:`tusk.interfaces`."""
