import logging

import uvicorn
from dotenv import load_dotenv

from storefront_api.config import load_settings
from storefront_api.main import create_app


# PUBLIC_INTERFACE
def main() -> None:
    """Load configuration from the environment (and .env) and serve the API."""
    load_dotenv()
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = create_app(settings)
    logging.getLogger(__name__).info("Storefront API listening at http://localhost:%d", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
