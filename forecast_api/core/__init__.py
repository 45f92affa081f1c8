"""Core prediction, price and sentiment logic."""
