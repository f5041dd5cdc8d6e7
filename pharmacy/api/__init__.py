"""HTTP surface of the fulfillment backend."""
