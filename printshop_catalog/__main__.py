from printshop_catalog.cli import run

run()
