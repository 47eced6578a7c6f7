"""Client-side orchestration of the upload, predict, and optimize bidding workflow."""

__version__ = "0.1.0"
