"""Error hierarchy, observability port and numeric helpers."""
