"""
FastAPI endpoints for the pallet inventory console.
This runs alongside the Streamlit app in the same container.
"""

import asyncio
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
import uvicorn

from utils.api_client import InventoryApiClient, get_api_base
from utils.badges import due_today_counts

load_dotenv()

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

logging.getLogger('utils.api_client').setLevel(logging.INFO)
logging.getLogger('utils.badges').setLevel(logging.INFO)

DEFAULT_TRIGGER_KEY = 'pallet_inventory_due_today_key'

# Create FastAPI app
app = FastAPI(
    title="Pallet Inventory API",
    description="Health and badge-count endpoints for the pallet inventory console",
    version="1.0.0"
)


def get_service_client():
    """API client authenticated with the service token"""
    return InventoryApiClient(token=os.environ.get('INVENTORY_API_TOKEN'))


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"message": "Pallet Inventory API is running", "status": "healthy"}


@app.get("/api/due-today")
async def due_today_endpoint(
    key: str = Query(..., description="Secret key for authentication")
):
    """
    Shipments and on-process batches due today.

    Same counts as the sidebar badges, for monitors that poll without a browser.
    """
    try:
        expected_key = os.environ.get('TRIGGER_SECRET_KEY', DEFAULT_TRIGGER_KEY)
        if key != expected_key:
            logger.warning("Invalid secret key provided to /api/due-today")
            raise HTTPException(status_code=401, detail="Invalid secret key")

        counts = await asyncio.to_thread(due_today_counts, get_service_client())
        logger.info(f"✅ Due today: {counts}")
        return {"success": True, **counts}

    except HTTPException:
        # Re-raise HTTP exceptions
        raise
    except Exception as e:
        logger.error(f"❌ Unexpected error in due-today endpoint: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e)}
        )


@app.get("/api/health")
async def health_check():
    """Detailed health check with configuration flags"""
    try:
        return {
            "status": "healthy",
            "environment": {
                "api_base": get_api_base(),
                "service_token": bool(os.environ.get('INVENTORY_API_TOKEN')),
                "trigger_secret_key": bool(os.environ.get('TRIGGER_SECRET_KEY'))
            },
            "endpoints": {
                "due_today": "/api/due-today?key=YOUR_SECRET_KEY",
                "health": "/api/health"
            }
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"status": "unhealthy", "error": str(e)}
        )


if __name__ == "__main__":
    # This allows running the API standalone for testing
    uvicorn.run(app, host="0.0.0.0", port=8001)
