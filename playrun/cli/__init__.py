"""playrun command-line interface."""
