import os

from review_agent.logger import get_logger

logger = get_logger()


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))

    logger.info(
        "Starting review agent webhook service on http://localhost:{port} (binding to {host}:{port})",
        host=host,
        port=port,
    )

    import uvicorn

    uvicorn.run(
        app="review_agent.main:app",
        host=host,
        port=port,
        reload=False,
        workers=1,
        log_level="info",
    )


if __name__ == "__main__":
    main()
