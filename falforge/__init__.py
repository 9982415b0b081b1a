"""
falforge: dynamic tool generation and model selection for the FAL AI catalog.
"""

__version__ = "0.1.0"
