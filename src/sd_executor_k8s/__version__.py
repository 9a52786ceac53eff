__version__ = "16.0.0"
