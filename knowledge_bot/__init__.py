"""Knowledge bot: retrieval-augmented answers grounded in a private knowledge base."""

__version__ = "0.1.0"
