"""Provider messaging integrations."""
