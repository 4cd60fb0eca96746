"""Allow ``python -m tusk.cli`` execution."""

from tusk.cli.main import main

main()
