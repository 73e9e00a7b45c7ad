"""filegate - resilient HTTP access layer with presigned-URL uploads"""

__version__ = "0.1.0"
