"""kubeinfra - provision cluster infrastructure and push install artifacts to its hosts."""

__version__ = "0.1.0"
