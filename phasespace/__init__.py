"""Read and write particle phase-space files in the IAEA binary format."""

__version__ = "0.1.0"

__all__ = ["cursor", "header", "record", "registry", "source"]