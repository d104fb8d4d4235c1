"""Core security, logging and error primitives."""
