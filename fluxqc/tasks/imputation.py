import logging

from fluxqc.celery_app import celery_app
from fluxqc.database import SessionLocal
from fluxqc.models.imputation_result import ImputationResult
from fluxqc.services.imputation import ImputationEngine

logger = logging.getLogger(__name__)


@celery_app.task
def run_imputation_job(result_id: int):
    """
    Background task: run a PENDING imputation result prepared by the API.

    The engine records FAILED on the result itself; the task only reports.
    """
    db = SessionLocal()
    try:
        result = db.query(ImputationResult).filter(ImputationResult.id == result_id).first()
        if not result:
            return {"error": f"Imputation result {result_id} not found"}

        summary = ImputationEngine(db).run(result)
        return summary.model_dump()

    except Exception as e:
        logger.warning("Imputation job %s failed: %s", result_id, e)
        return {"error": str(e), "result_id": result_id}

    finally:
        db.close()
