"""Core building blocks for Strata: configuration, content, git and layers."""
