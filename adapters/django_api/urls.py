"""
Millstone Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("ledger/receipts", views.receipts_view),
    path("ledger/batches", views.batches_view),
    path("ledger/batches/issue", views.batch_issue_view),
    path("ledger/batches/complete", views.batch_complete_view),
    path("ledger/packing-runs", views.packing_runs_view),
    path("ledger/dispatches", views.dispatches_view),
    path("ledger/adjustments", views.adjustments_view),
    path("ledger/stock", views.stock_view),
    path("ledger/audit-trail", views.audit_trail_view),
    path("ledger/reports/valuation", views.valuation_report_view),
    path("ledger/packaging-profiles", views.packaging_profiles_view),
]
