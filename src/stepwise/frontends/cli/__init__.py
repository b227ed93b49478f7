"""Command line interface (``stepwise``)."""
