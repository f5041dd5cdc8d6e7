"""Storage, gateway and notification implementations of the repository
protocols."""
