"""CRUD layer: administrative reads and writes against the inventory store."""
