"""APCollector: temporary rooms for collecting participants' files."""

__version__ = "0.1.0"
