"""
Temporal activity wrappers, workflow proxies and the Temporal notifier.

Intentionally minimal: the workflow sandbox imports the proxies module, so
nothing here may pull in activity implementations at import time.
"""
