import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from torneos.config import CORS_ORIGINS, LOG_LEVEL
from torneos.database import init_db
from torneos.routes import groups, lifecycle, review, runtime, teams, tournaments

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = "Torneos Padel API"

app = FastAPI(title=APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(teams.router, prefix="/api", tags=["teams"])
# Registration close, group close, playoff preview, schedule regeneration (plain + stream)
app.include_router(lifecycle.router, prefix="/api", tags=["lifecycle"])
app.include_router(groups.router, prefix="/api", tags=["groups"])
# Swaps and manual slots while the schedule is under review
app.include_router(review.router, prefix="/api", tags=["review"])
# Results + advancement; no schedule mutation
app.include_router(runtime.router, prefix="/api", tags=["runtime"])


@app.on_event("startup")
def on_startup():
    init_db()
    route_count = sum(1 for r in app.routes if getattr(r, "path", "").startswith("/api"))
    logger.info("%s started with %d API routes", APP_NAME, route_count)


@app.get("/api/health")
def health_check():
    return {"app_name": APP_NAME, "status": "healthy"}
