from django.urls import path

from .views import HistoryListView, HistoryYearView, HistoryFailureListView

urlpatterns = [
    path("", HistoryListView.as_view(), name="history-list"),
    path("failures/", HistoryFailureListView.as_view(), name="history-failures"),
    path("<int:year>/", HistoryYearView.as_view(), name="history-year"),
]
