"""Command-line entry points (``wood-engrave``, ``wood-engrave-import``)."""
