"""Domain services: streak derivation and the habit façade."""
