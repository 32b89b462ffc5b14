"""Kinship network relationship and request workflow engine."""
