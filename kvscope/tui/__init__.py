"""Textual front-end for the explorer."""
