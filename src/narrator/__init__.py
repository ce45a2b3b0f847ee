"""Streaming narration service."""
