"""Core: archive decoding, local cache, document walkers, and page summaries."""
