"""Mock external services that log instead of calling a provider."""
