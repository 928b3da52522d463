"""Bundled command plugins. Each module registers commands on import."""
