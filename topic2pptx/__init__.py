"""Topic → slide deck generation and PPTX export."""

__version__ = "1.0.0"
