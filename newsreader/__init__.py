"""Newsletter reader: browse newsletters stored in Redis or Upstash."""

__version__ = "1.0.0"
