"""
Cost Analysis Lambda Handler.

Triggered on a schedule (or invoked directly) to:
1. Collect last week's costs, recent history and the resource inventory
2. Run every enabled red flag detector
3. Project next week's and the monthly cost
"""

from datetime import UTC, datetime
from typing import Any

import structlog

from cost_observability.analysis import CostAnalysisService
from cost_observability.config import load_config
from cost_observability.errors import CostObservabilityError
from cost_observability.logging_config import configure_logging

logger = structlog.get_logger(__name__)


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda handler for a cost analysis run.

    Environment variables:
    - CONFIG_DIR: Directory holding config.yaml
    - CONFIG_ENV: Environment (dev, staging, prod)
    - AWS_REGION, MONTHLY_BUDGET, LEARNING_TABLE_NAME, LOG_LEVEL, DEMO_MODE

    Event parameters:
    - deployment_id: str - Deployment to analyze (required)
    - tags: dict - Only count costs and resources carrying these tags
    - demo_mode: bool - Use generated demo data instead of AWS
    """
    config = load_config()
    if event.get("demo_mode"):
        config = config.model_copy(update={"demo_mode": True})

    configure_logging(config.logging.level, config.logging.json_output)

    deployment_id = event.get("deployment_id")
    if not deployment_id:
        logger.warning("Missing deployment_id in event")
        return {"statusCode": 400, "body": {"error": "deployment_id is required"}}

    logger.info(
        "Cost analysis invoked",
        deployment_id=deployment_id,
        invoked_at=datetime.now(UTC).isoformat(),
        demo_mode=config.demo_mode,
    )

    try:
        with CostAnalysisService(config) as service:
            result = service.generate_cost_analysis(deployment_id, tags=event.get("tags"))
    except CostObservabilityError as e:
        logger.error("Cost analysis failed", deployment_id=deployment_id, error=str(e))
        return {"statusCode": 500, "body": {"error": str(e)}}

    return {"statusCode": 200, "body": result.model_dump(mode="json")}
