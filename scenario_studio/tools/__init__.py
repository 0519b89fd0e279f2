"""Command-line tools: scenario validation and fake-clock simulation."""
