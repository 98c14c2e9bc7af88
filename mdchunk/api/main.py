import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mdchunk.config.settings import settings
from mdchunk.core.formula.selector import FormulaRenderer
from mdchunk.core.pipeline.rendering import RenderPipeline
from mdchunk.storage.cache_manager import render_caches

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup: Initialize singletons ---
    logger.info("Initializing render pipelines...")

    formula_renderer = FormulaRenderer()
    render_pipeline = RenderPipeline(formula_renderer=formula_renderer)

    # Store in app.state for dependency injection
    app.state.formula_renderer = formula_renderer
    app.state.render_pipeline = render_pipeline
    # Every streaming session owns its pipeline; the formula renderer is shared
    app.state.session_pipeline_factory = lambda: RenderPipeline(formula_renderer=formula_renderer)
    app.state.sessions = {}

    logger.info("Initialization complete. All systems ready.")

    yield

    # --- Shutdown: close open sessions ---
    logger.info(f"Shutting down, closing {len(app.state.sessions)} open sessions...")
    for session in list(app.state.sessions.values()):
        session.close()
    app.state.sessions.clear()
    render_caches.clear_all()

# Create FastAPI instance
app = FastAPI(
    title="mdchunk API",
    description="Incremental Markdown chunk rendering with cached formula and code output",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health Check Endpoint
@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}

from mdchunk.api.routes import render, formula, sessions

app.include_router(render.router, prefix="/api", tags=["Render"])
app.include_router(formula.router, prefix="/api", tags=["Formula"])
app.include_router(sessions.router, prefix="/api", tags=["Sessions"])

@app.get("/", tags=["System"])
def root():
    return {"message": "mdchunk API is running."}
