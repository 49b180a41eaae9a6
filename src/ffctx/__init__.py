"""ff-context: cached, summarized access to FlutterFlow project YAML for AI agents."""

__version__ = "0.1.0"
