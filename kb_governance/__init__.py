"""Knowledge-base governance: quality detectors, issue workflow and sync."""

__version__ = "0.4.0"
