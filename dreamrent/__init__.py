"""Dream Rent dashboard core."""
