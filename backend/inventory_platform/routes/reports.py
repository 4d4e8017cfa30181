from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_LOW_STOCK_REPORT")
def low_stock_report():
    return jsonify(reporting_service.low_stock_report()), 200


@reports_bp.get("/sales-summary")
@require_auth
@require_permission("VIEW_SALES_REPORTS")
def sales_summary_report():
    start = request.args.get("start_date")
    end = request.args.get("end_date")

    try:
        report = reporting_service.sales_summary(start=start, end=end)
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/sales-by-period")
@require_auth
@require_permission("VIEW_SALES_REPORTS")
def sales_by_period_report():
    group_by = request.args.get("group_by", "day")
    start = request.args.get("start_date")
    end = request.args.get("end_date")

    try:
        report = reporting_service.sales_by_period(group_by=group_by, start=start, end=end)
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
