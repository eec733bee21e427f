"""Route blueprints: auth (public), dashboard (/app), admin (/admin), api (/api)."""
