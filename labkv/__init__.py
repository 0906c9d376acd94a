"""MapReduce framework, key/value store, key/value history model and value codec."""

__version__ = "0.1.0"