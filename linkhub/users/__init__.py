"""User records and their JSON document store."""
