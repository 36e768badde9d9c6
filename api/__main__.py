"""Run the API server: python -m api"""

import uvicorn

from leadpulse.utils.config import get_settings


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "api:get_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=get_settings().ENVIRONMENT == "development",
    )
