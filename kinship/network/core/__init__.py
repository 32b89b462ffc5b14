"""Core domain models, errors and interfaces for the network engine."""
