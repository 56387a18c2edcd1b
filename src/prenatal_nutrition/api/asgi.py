"""ASGI entrypoint for the prenatal nutrition API."""

from prenatal_nutrition.api.app import create_app
from prenatal_nutrition.containers import build_container

app = create_app(build_container())
