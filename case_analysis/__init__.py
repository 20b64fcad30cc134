"""Case analysis workflow service."""
