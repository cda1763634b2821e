"""
FastAPI Application Package

This package contains the FastAPI application of the quote service.
It wires the market-data client, quote caches and daily broadcast together
and exposes them through REST and WebSocket endpoints.
"""
