"""Priory: file hosting, shortlinks and upload tooling."""
