"""frameforge: conversational image and wireframe generation over MCP."""

__version__ = "0.1.0"

__all__ = ["__version__"]
