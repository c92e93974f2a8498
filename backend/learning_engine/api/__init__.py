"""Adaptive Learning Engine - HTTP API."""
