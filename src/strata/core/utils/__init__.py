"""Shared utilities (I/O, locking, subprocess, text, merging)."""
