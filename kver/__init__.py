"""Install and select Python, Node.js and Ruby versions side by side."""

__version__ = "0.1.0"
__all__ = ["__version__"]