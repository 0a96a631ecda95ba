"""Run the API server.

    python -m resonance
"""

import uvicorn

from resonance.config import get_settings


def main() -> None:
    """Serve the API with uvicorn using configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "resonance.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
