import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from platform_sync.api.v1.endpoints.integrations import router as integrations_router
from platform_sync.api.v1.endpoints.webhook_receiver import router as webhook_router
from platform_sync.core.config import settings

logging.basicConfig(level=settings.log_level)
_logger = logging.getLogger(__name__)

app = FastAPI(title="Restaurant Platform Sync")

origins = [
    "http://localhost",
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook_router, tags=["webhooks"])
app.include_router(integrations_router)


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=5010)
