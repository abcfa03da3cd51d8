"""Business logic services orchestrating domain operations."""
