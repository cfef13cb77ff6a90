"""healthwatch - scheduled reachability and TLS certificate checks for registered endpoints."""

__version__ = "1.0.0"
