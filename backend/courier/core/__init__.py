"""Core building blocks shared by courier modules."""
