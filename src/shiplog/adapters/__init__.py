"""Adapters connecting the core to HTTP, logging and storage backends."""
