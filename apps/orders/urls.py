from django.urls import path

from .views import OrderViewSet

order_list = OrderViewSet.as_view({"get": "list", "post": "create", "delete": "archive"})
order_detail = OrderViewSet.as_view({
    "get": "retrieve",
    "put": "update",
    "patch": "partial_update",
    "delete": "destroy",
})
order_payment = OrderViewSet.as_view({"post": "payment"})
order_cancel = OrderViewSet.as_view({"post": "cancel"})

urlpatterns = [
    path("", order_list, name="orders-list"),
    path("<uuid:pk>/", order_detail, name="orders-detail"),
    path("<uuid:pk>/payment/", order_payment, name="orders-payment"),
    path("<uuid:pk>/cancel/", order_cancel, name="orders-cancel"),
]
