"""Static configuration: scenario registry, tool catalog, runtime settings."""
