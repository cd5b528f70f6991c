from django.urls import path

from orders.api import views


urlpatterns = [
    path("", views.orders_collection, name="orders"),
    path("admin/all/", views.admin_orders, name="admin-orders"),
    path("admin/<str:order_id>/", views.admin_order_override, name="admin-order-override"),
    path("admin/<str:order_id>/status/", views.admin_order_status, name="admin-order-status"),
    path("<str:order_id>/", views.order_detail, name="order-detail"),
    path("<str:order_id>/status/", views.order_status, name="order-status"),
]
