"""Infrastructure adapters (processes, files, templates, TLS, crypto)."""
