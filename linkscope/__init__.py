"""Investigative graph neighborhood explorer."""

__version__ = "0.1.0"
