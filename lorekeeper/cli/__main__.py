"""Allow ``python -m lorekeeper.cli`` execution."""

from lorekeeper.cli.main import main

main()
