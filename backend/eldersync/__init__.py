"""ElderSync - patient mobility and fall-risk monitoring backend."""

__version__ = "2.0.0"
