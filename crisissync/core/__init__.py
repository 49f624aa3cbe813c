"""Core configuration, logging, security and persistence plumbing."""
