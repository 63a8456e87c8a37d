"""Core services: host identity trust and init-system service installation."""
