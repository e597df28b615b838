"""Command-line entry points (``viscosity-analyzer``)."""
