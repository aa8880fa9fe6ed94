"""Core plumbing: configuration, logging, timers and background tasks."""
