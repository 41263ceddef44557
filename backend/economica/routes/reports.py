from flask import Blueprint, current_app, g, jsonify, request

from economica.decorators import require_auth, require_permission
from economica.extensions import db
from economica.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_auth
@require_permission("VIEW_SALES_REPORTS")
def sales_report():
    """Sales summary for the caller's store."""
    range_name = request.args.get("range", "daily")
    from_date = request.args.get("from_date")
    to_date = request.args.get("to_date")

    try:
        report = reporting_service.sales_summary(
            from_date=from_date,
            to_date=to_date,
            cashier_id=request.args.get("cashier_id", type=int),
            store_id=g.current_user.store_id,
            range_name=range_name,
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Error interno del servidor"}), 500
