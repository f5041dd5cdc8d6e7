"""Command line entry points for operating the fulfillment backend."""
