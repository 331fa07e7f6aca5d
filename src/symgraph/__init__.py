"""symgraph: index source code into a queryable symbol and relationship graph."""

__version__ = "0.1.0"
