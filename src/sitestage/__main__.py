from sitestage.cli import cli

cli()
