"""HTTP surface of the worker: on-demand trigger and status endpoints."""
