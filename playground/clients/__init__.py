"""HTTP clients for playground backends."""
