"""Click command modules registered on the ``sqlmanage`` group in cli.py."""
