"""descbot - rotating profile descriptions with an in-chat control protocol."""

__version__ = "1.0.0"
