#!/usr/bin/env python3
"""
Custodian - IT asset assignment, tagging and audit service
Main application entry point
"""

import uvicorn
from custodian import create_app
from custodian.core.config import settings

# Create the FastAPI application
app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning"
    )
