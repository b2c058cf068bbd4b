"""Entity services: one per remote collection, each fronted by its cache."""
