"""Core dispatch planning, bridging and recovery logic."""
