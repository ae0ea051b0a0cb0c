from django.urls import path
from .views import CommissionRateView, CommissionHistoryView

urlpatterns = [
    path("", CommissionRateView.as_view(), name="commission-rate"),
    path("history/", CommissionHistoryView.as_view(), name="commission-history"),
]
