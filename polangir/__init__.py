"""Polang IR with type inference and monomorphization passes."""

__version__ = "0.1.0"

__all__ = ["typesys", "ir", "inference", "monomorphize"]