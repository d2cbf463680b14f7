import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fieldguard.config import settings
from fieldguard.database import Base, engine
from fieldguard.models.validation_log import ValidationLog  # noqa: F401  registers the table
from fieldguard.routes.validation import router as validation_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Fieldguard API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"message": "Fieldguard API is running", "version": "1.0.0"}


@app.get("/health")
def health():
    return {"status": "healthy"}


app.include_router(validation_router)
