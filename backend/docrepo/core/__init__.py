"""Configuration, logging, metrics and error types shared by every component."""
