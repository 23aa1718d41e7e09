"""Run the API with uvicorn: ``python -m assessment_orders``."""
import uvicorn

from assessment_orders.config import settings


def main() -> None:
    uvicorn.run(
        "assessment_orders.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,  # keep the structlog handlers installed by setup_logging()
    )


if __name__ == "__main__":
    main()
