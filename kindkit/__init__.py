"""Helpers for local Kubernetes-in-container clusters: errors, commands, files, nodes and images."""

__version__ = "0.20.0"

__all__ = [
    "cmdexec",
    "errors",
    "fs",
    "images",
    "iostreams",
    "nodeutils",
    "version",
]