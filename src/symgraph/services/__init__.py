"""Services: query helpers and the command-line interface."""
