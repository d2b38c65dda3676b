from django.urls import path

from . import views

urlpatterns = [
    path("down/", views.sync_down, name="sync-down"),
    path("up/", views.sync_up, name="sync-up"),
    path("jobs/complete/", views.complete_job, name="job-complete"),
    path("jobs/paid/", views.mark_paid, name="job-paid"),
    path("jobs/start/", views.start_job, name="job-start"),
    path("jobs/work-order/", views.issue_work_order, name="job-work-order"),
    path("jobs/usage/", views.log_material_usage, name="job-usage"),
    path("jobs/delete/", views.delete_job, name="job-delete"),
]
