"""Read-only query layer over stock records, movements and requests."""
