"""
MedCure Pharmacy Inventory - FastAPI Application
FEFO batch allocation with profit tracking, plus demand forecasting
to tell the pharmacy what to reorder, how much, and when.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medcure import __version__
from medcure.api import routes
from medcure.config.settings import settings

logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)

app = FastAPI(
    title="MedCure Pharmacy Inventory",
    description="FEFO batch allocation and demand forecasting for pharmacies",
    version=__version__
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(routes.router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    return {
        "message": "MedCure Pharmacy Inventory API",
        "docs": "/docs",
        "health": "ok"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
