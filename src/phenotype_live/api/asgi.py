"""ASGI entrypoint for the phenotype live API."""

from phenotype_live.api.app import create_app
from phenotype_live.containers import build_container

app = create_app(build_container())
