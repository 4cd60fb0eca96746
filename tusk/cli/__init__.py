"""Command-line interface: ``python -m tusk.cli.main`` or the ``tusk`` script."""
