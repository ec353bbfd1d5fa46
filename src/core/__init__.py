"""
Core business logic for the video registry.

This module is framework-agnostic - it doesn't import FastAPI, MongoDB,
or Google libraries. This separation means we can test the registry
policy in isolation and swap storage backends if needed.
"""
