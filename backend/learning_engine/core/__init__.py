"""Adaptive Learning Engine - Core (configuration, database, security, policy)."""
