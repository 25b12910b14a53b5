"""Infrastructure - GPS math, location providers and storage."""
