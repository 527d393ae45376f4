"""User-facing interfaces for leadbridge."""
