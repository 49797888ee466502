from dotenv import load_dotenv

load_dotenv(".env")

import os
from contextlib import asynccontextmanager

import logfire
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.exceptions import register_exception_handlers
from database.database import Base, engine
from routes import admin, auth, patient, photos, user
from utils.state import State

state = State()
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    state.logger.info("Starting up...")
    yield
    state.logger.info("Shutting down...")


app = FastAPI(
    title="Patient Records API",
    description="Patient directory, medical photo storage and staff role management",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=False,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ],
    allow_methods=["*"],
    allow_headers=["*"],
)

logfire.instrument_fastapi(app, capture_headers=True)
logfire.instrument_sqlalchemy(engine)

app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(user.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(patient.router, prefix="/api/v1/patients", tags=["Patients"])
app.include_router(photos.router, prefix="/api/v1/patients", tags=["Photos"])
app.include_router(admin.router, prefix="/api", tags=["Admin"])


@app.get("/")
async def root():
    return {"message": "Welcome to the Patient Records API"}
