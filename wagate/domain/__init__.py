"""Domain layer: models and collaborator interfaces."""
