"""Domain types and ports shared by the adapter and use cases."""
