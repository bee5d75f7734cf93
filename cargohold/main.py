from fastapi import FastAPI

from cargohold import __version__
from cargohold.api import router as cargohold_router

app = FastAPI(
    title="cargohold API",
    description="Inventory and control of a local container engine.",
    version=__version__,
)

app.include_router(cargohold_router, prefix="/cargohold", tags=["cargohold"])


@app.get("/", summary="Root endpoint")
def read_root():
    """
    Root endpoint of the cargohold API.
    """
    return {"message": "Welcome to cargohold API"}
