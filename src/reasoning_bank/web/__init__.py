"""HTTP interface for the reasoning bank."""
