"""Shared utilities for ClipVault: errors, logging, constants."""
