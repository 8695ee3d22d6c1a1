"""kuzcoinstall - installer for the Kuzco CLI, runtime and GPU drivers."""

__version__ = "0.1.0"
