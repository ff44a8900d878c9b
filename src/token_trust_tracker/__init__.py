"""Token Trust Tracker - recommender trust scoring and simulated selling."""

__version__ = "0.1.0"
