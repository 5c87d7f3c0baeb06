"""HTTP blueprints for the local ECC stub service."""
