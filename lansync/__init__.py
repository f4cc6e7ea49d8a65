"""Local-network file synchronisation: a server, a client service and UDP discovery."""

__version__ = "1.0.0"
__all__ = ["__version__"]