"""
MCP gateway exposing Smart2Go app management tools.

The package wires a JSON-RPC tool surface (ping, login, create_app,
import_app) onto the Smart2Go REST backend.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
