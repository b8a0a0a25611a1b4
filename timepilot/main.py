from fastapi import FastAPI

from timepilot.config import get_config
from timepilot.logging_config import configure_logging
from timepilot.routes import planner

configure_logging(log_level=get_config().log_level)

# Create FastAPI app
app = FastAPI(
    title="TimePilot API",
    description="Study plan generation, missed-session recovery and task feasibility checks",
    version="1.0.0"
)

# Include routers
app.include_router(planner.router, prefix="/planner", tags=["planner"])

@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": "Welcome to TimePilot API",
        "version": "1.0.0",
        "endpoints": {
            "generate": "POST /planner/generate - Generate a study plan",
            "generate_preserving": "POST /planner/generate-preserving - Regenerate keeping finished and manual sessions",
            "redistribute": "POST /planner/redistribute - Move missed sessions forward",
            "feasibility": "POST /planner/feasibility - Check a task before saving it",
            "assess_add_task": "POST /planner/assess-add-task - Trial-plan a new task",
            "commitment_sessions": "POST /planner/commitment-sessions - Weekly blocks for a flexible commitment",
            "validate_settings": "POST /planner/validate-settings - Check manual sessions against new settings",
            "commitment_conflicts": "POST /planner/commitment-conflicts - Check a commitment for clashes"
        },
        "swagger_ui": "/docs - Interactive API documentation",
        "redoc": "/redoc - Alternative API documentation"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

# This allows running the app directly with: python -m timepilot.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("timepilot.main:app", host="0.0.0.0", port=8000, reload=True)
