"""Portal site API: JSON endpoints and admission control for the corporate website."""

__version__ = "1.0.0"
