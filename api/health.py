from flask import Blueprint, current_app

from api.utils.responses import api_response
from models.base_model import utcnow

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            statusCode: { type: integer, example: 200 }
            message: { type: string, example: OK }
            success: { type: boolean }
            data:
              type: object
              properties:
                status: { type: string, example: ok }
                timestamp: { type: string }
                environment: { type: string, example: dev }
    """
    return api_response(200, "OK", {
        "status": "ok",
        "timestamp": utcnow().isoformat() + "Z",
        "environment": current_app.config.get("APP_ENV"),
    })
