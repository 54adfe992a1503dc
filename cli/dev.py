def main() -> None:
    """Run development server with auto-reload."""
    import uvicorn

    from risk_evaluation.core.config import get_settings

    settings = get_settings()

    uvicorn.run(
        "risk_evaluation.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=True,
        log_level="info",
    )
