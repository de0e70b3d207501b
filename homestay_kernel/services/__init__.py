"""Kernel services - sequence allocation, record persistence, transition log."""
