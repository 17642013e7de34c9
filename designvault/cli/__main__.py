"""Allow ``python -m designvault.cli`` execution."""

from designvault.cli.manage import main

main()
