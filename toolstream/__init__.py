"""toolstream: streaming tool-call decoding and context windows for chat agents."""

__version__ = "0.1.0"
