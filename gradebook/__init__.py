"""Gradebook backend: roster/curriculum importer and grade entry."""
